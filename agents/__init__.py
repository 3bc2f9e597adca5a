"""
superctrl Agents - execution backends for desktop control.

Available agents:
- computer_use: Desktop control via screenshots + mouse/keyboard
"""
