"""
Services module: the decision core and the storage-facing services around it.

- rotation_engine / simulation_runner: weighted destination selection
- rate_limiter / counter_store: redirect admission control
- slug_generator: identifiers for new rules
- rule_service / redirect_service: glue between storage, core and the API
"""
