import importlib

import pytest
import anyio
import httpx


class FakeCloudWatch:
    def __init__(self):
        self.metric_calls = []

    def put_metric_data(self, Namespace, MetricData):
        self.metric_calls.append({"Namespace": Namespace, "MetricData": MetricData})
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}


@pytest.fixture()
def api_app(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("METRICS_NAMESPACE", "SheetScope/Test")
    monkeypatch.delenv("SHEETSCOPE_MAX_FILE_SIZE", raising=False)
    monkeypatch.delenv("SHEETSCOPE_PREVIEW_ROWS", raising=False)
    monkeypatch.delenv("SHEETSCOPE_ALLOWED_EXTENSIONS", raising=False)

    from services.api import app as app_module

    importlib.reload(app_module)

    fake_cw = FakeCloudWatch()
    app_module.cloudwatch = fake_cw

    transport = httpx.ASGITransport(app=app_module.app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    class SyncClient:
        def request(self, method: str, url: str, **kwargs):
            return anyio.run(lambda: async_client.request(method, url, **kwargs))

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

        def put(self, url: str, **kwargs):
            return self.request("PUT", url, **kwargs)

        def delete(self, url: str, **kwargs):
            return self.request("DELETE", url, **kwargs)

    try:
        yield {
            "client": SyncClient(),
            "module": app_module,
            "cloudwatch": fake_cw,
        }
    finally:
        anyio.run(async_client.aclose)
