"""
API Routers - HTTP endpoint handlers

- invocations: /ping and /invocations, the model-serving container contract
- health: readiness and model information
"""
