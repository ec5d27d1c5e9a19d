"""
Collection Browser Service package.

The browser lets a stateless front-end page through remote, server-paginated
collections across independent requests by keeping each session's
continuation tokens in a short-lived cache.

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.domain: Value types shared by the paging core and its collaborators.
- app.caching: Cache stores, value codecs, and the staged session view.
- app.paging: Parameter/token resolution and the page orchestrator.
- app.adapters: HTTP client for the remote listing service.
"""
