"""Core — models, configuration, provisioning services and the driver."""
