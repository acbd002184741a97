"""
Building blocks of the synchronisation layer.

  config     — JSON config loader (cfg)
  gateway    — JSON-RPC request transport
  events     — typed event bus
  status     — PlayerStatus record and the pending-mutation token
  diff       — change detection between poll and cache
  scheduler  — self-rescheduling observers
  playtime   — local playtime ticker
  watchdog   — systemd heartbeat
"""
