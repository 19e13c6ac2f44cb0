"""Guest Sync - WiFi captive-portal contacts into GoHighLevel."""

__version__ = "0.1.0"
