# Config package
