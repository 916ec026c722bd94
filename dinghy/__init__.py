"""
Dinghy - build on a host, run and test on other targets.

Dinghy drives an existing cross toolchain through environment variables and
shim scripts, then bundles the produced executables and runs them on Android
devices (adb), boards reached over ssh, iOS simulators or the host itself.
"""

__version__ = "0.1.0"
