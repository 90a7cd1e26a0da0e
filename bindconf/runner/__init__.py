"""Scenario runner internals.

Modules:
- constants: socket option numbers, ioctl request codes and defaults
- types: dataclasses for steps, Scenario and ScenarioResult
- errors: skip / fail / engine-error taxonomy
- interfaces: host interface inventory and TUN-backed virtual interfaces
- devices: logical device id -> interface name provisioning
- sockets: socket lifecycle table and the shared port memo
- config: JSON scenario catalogs
- exec: core orchestration logic
"""
