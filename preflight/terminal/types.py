from enum import Enum


class OutputMode(str, Enum):
    DASHBOARD = "dashboard"
    VERBOSE = "verbose"
