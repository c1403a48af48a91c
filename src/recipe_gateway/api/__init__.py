"""HTTP shell around the gateway."""
