import httpx


class FakeHTTPXResponse:
    def __init__(self, json_data=None, status_code=200):
        self._json_data = json_data or {}
        self.status_code = status_code

    def json(self):
        return self._json_data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPError(f"HTTP {self.status_code}")


class FakeEmailClient:
    """Stands in for ``httpx.Client``; fails for addresses in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent: list[dict] = []

    def post(self, url, headers=None, json=None):
        self.sent.append({"url": url, "headers": headers, "json": json})
        if json and set(json.get("to", [])) & self.failing:
            return FakeHTTPXResponse({"message": "rejected"}, status_code=422)
        return FakeHTTPXResponse({"id": f"email-{len(self.sent)}"})

    def close(self):
        pass
