"""
Mock OpenAI listing server serving seeded assistants and fine-tuning jobs.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query

from shared.logging import get_logger


class MockListingServer:
    """Mock listing service implementing cursor pagination."""

    def __init__(self, port: int = 8090, assistant_count: int = 45, job_count: int = 23):
        self.port = port
        self.logger = get_logger("mock.openai")
        self.app = FastAPI(title="Mock OpenAI Listings", version="1.0.0")

        # Ascending by creation time
        self.assistants: List[Dict[str, Any]] = [
            {
                "id": f"asst_{index:04d}",
                "object": "assistant",
                "created_at": 1700000000 + index,
                "name": f"Assistant {index}",
                "model": "gpt-4o",
            }
            for index in range(assistant_count)
        ]
        self.fine_tuning_jobs: List[Dict[str, Any]] = [
            {
                "id": f"ftjob_{index:04d}",
                "object": "fine_tuning.job",
                "created_at": 1700000000 + index,
                "model": "gpt-4o-mini",
                "status": "succeeded" if index % 3 else "running",
            }
            for index in range(job_count)
        ]
        self.requests: List[Dict[str, Any]] = []

        self._setup_routes()

    def _setup_routes(self):
        """Set up list routes."""

        @self.app.get("/v1/assistants")
        async def list_assistants(
            limit: int = Query(20, ge=1, le=100),
            order: str = Query("desc", pattern="^(asc|desc)$"),
            after: Optional[str] = None,
            authorization: Optional[str] = Header(None),
        ):
            self._authorize(authorization)
            return self._page(self.assistants, "assistants", limit, order, after)

        @self.app.get("/v1/fine_tuning/jobs")
        async def list_fine_tuning_jobs(
            limit: int = Query(20, ge=1, le=100),
            after: Optional[str] = None,
            authorization: Optional[str] = Header(None),
        ):
            self._authorize(authorization)
            return self._page(self.fine_tuning_jobs, "fine_tuning_jobs", limit, "desc", after)

    def _authorize(self, authorization: Optional[str]) -> None:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing bearer token")

    def _page(
        self,
        records: List[Dict[str, Any]],
        collection: str,
        limit: int,
        order: str,
        after: Optional[str],
    ) -> Dict[str, Any]:
        ordered = records if order == "asc" else list(reversed(records))

        start = 0
        if after is not None:
            ids = [record["id"] for record in ordered]
            if after not in ids:
                raise HTTPException(status_code=400, detail=f"Unknown cursor '{after}'")
            start = ids.index(after) + 1

        page = ordered[start:start + limit]
        self.requests.append({"collection": collection, "limit": limit, "order": order, "after": after})
        self.logger.debug("Served mock page", collection=collection, start=start, count=len(page))

        return {
            "object": "list",
            "data": page,
            "first_id": page[0]["id"] if page else None,
            "last_id": page[-1]["id"] if page else None,
            "has_more": start + limit < len(ordered),
        }

    def run(self):
        """Run the mock server."""
        import uvicorn
        uvicorn.run(self.app, host="0.0.0.0", port=self.port)


if __name__ == "__main__":
    server = MockListingServer()
    server.run()
