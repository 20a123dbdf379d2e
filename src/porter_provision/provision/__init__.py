"""Region provisioning: secrets, stack dispatch and the stage orchestrator."""
