"""
Scripted stand-in for the Ozon Seller API, served through httpx.MockTransport
so the real OzonClient (headers, error handling, archive) runs unchanged.
"""
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx


@dataclass
class Reply:
    """Explicit status/payload; status None simulates a dropped connection"""
    status: Optional[int] = 200
    payload: Any = None


Scripted = Union[Reply, Callable[[Any], Any], Dict, List]


class FakeOzonApi:
    def __init__(self):
        self.routes: Dict[str, List[Scripted]] = {}
        self.calls: List[Tuple[str, Any]] = []

    def on(self, path: str, *responses: Scripted) -> "FakeOzonApi":
        """
        Script responses for a path. They are served in order; the last one
        keeps being served. Unscripted paths answer 404.
        """
        self.routes[path] = list(responses)
        return self

    def calls_to(self, path: str) -> List[Any]:
        return [body for called, body in self.calls if called == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.calls.append((path, body))

        queue = self.routes.get(path)
        if not queue:
            return httpx.Response(404, json={"code": 5, "message": "Not Found"})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            response = response(body)

        if isinstance(response, Reply):
            if response.status is None:
                raise httpx.ConnectError("Connection refused", request=request)
            return httpx.Response(response.status, json=response.payload)
        return httpx.Response(200, json=response)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def product_list_page(entries: List[Dict], last_id: str = "", total: Optional[int] = None) -> Dict:
    result: Dict[str, Any] = {"items": entries, "last_id": last_id}
    if total is not None:
        result["total"] = total
    return {"result": result}


def info_for(body: Any, catalog: Dict[int, Dict]) -> Dict:
    """/v3/product/info/list answer for the requested ids"""
    ids = [int(pid) for pid in (body or {}).get("product_id", [])]
    return {"items": [catalog[pid] for pid in ids if pid in catalog]}
