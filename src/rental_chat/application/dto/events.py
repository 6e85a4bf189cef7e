from __future__ import annotations

MESSAGE_INSERTED = "rental.message_inserted"

# Rental platform events consumed from the Redis stream.
PAYMENT_DUE = "payment.due"
PAYMENT_RECEIVED = "payment.received"
APPLICATION_STATUS_CHANGED = "application.status_changed"
MAINTENANCE_UPDATED = "maintenance.updated"
