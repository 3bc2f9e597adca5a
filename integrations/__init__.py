"""
Integrations - OS-level hooks used by the daemon.

Provides:
- EmergencyStop: Global hotkey that cancels the running command
"""
from integrations.hotkey import EmergencyStop
