"""Names of the notifications exchanged over the event bus."""

ADDRESS_FOUND = "process.address_found"
PROCESS_CLOSED = "process.closed"
CONTROLLER_STATUS = "controller.status"
RULE_TRIGGERED = "rule.triggered"
