[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lidarfeed"
version = "0.1.0"
description = "Livox lidar data handling: JSON config parsing, packet decoding with extrinsic compensation, frame publishing and point/IMU buffering."
requires-python = ">=3.10"
dependencies = []
keywords = ["lidar", "livox", "point-cloud", "imu", "extrinsics", "robotics"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware :: Hardware Drivers",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lidarfeed"]

[tool.pytest.ini_options]
addopts = "-ra"
