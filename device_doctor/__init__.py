"""Device Doctor - diagnose adb/fastboot device state and learn which fix works."""

try:
    from device_doctor._version import version as __version__
except ImportError:
    __version__ = "0.0.0.dev0"
