"""Always-on automation layer: state mirroring, input mirroring and rules."""
