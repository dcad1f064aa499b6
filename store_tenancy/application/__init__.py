"""Application layer: routing, provisioning and health services over ports."""
