"""Locust profile for mixed create/redirect/stats traffic.

Redirects dominate the mix, matching a read-heavy shortener. Each user keeps
a pool of codes it created so redirect and stats requests hit real records
(and, after the first resolution, the cache).

    locust -f stress/locustfile.py --host http://localhost:8080
"""

import random

from locust import HttpUser, between, task

MAX_CODES_PER_USER = 200


class ShortLinkUser(HttpUser):
    """Mixed workload user for local functional load checks."""

    wait_time = between(0.1, 0.5)

    def on_start(self) -> None:
        self.codes: list[str] = []

    def _remember(self, short_url: str) -> None:
        self.codes.append(short_url.rsplit("/", 1)[-1])
        if len(self.codes) > MAX_CODES_PER_USER:
            self.codes = self.codes[-MAX_CODES_PER_USER:]

    @task(2)
    def create_short_url(self) -> None:
        """Create a generated code for a fresh long URL."""

        payload = {"long_url": f"https://example.com/page/{random.randint(1, 1000000)}"}
        response = self.client.post("/create", json=payload, name="POST /create")

        if response.status_code == 200:
            self._remember(response.json()["short_url"])

    @task(1)
    def create_alias(self) -> None:
        """Claim a random alias; 409 on a taken alias is an expected outcome."""

        payload = {
            "long_url": f"https://example.com/alias/{random.randint(1, 1000000)}",
            "custom_alias": f"lt{random.randint(0, 99999999)}",
        }
        with self.client.post("/create", json=payload, name="POST /create (alias)", catch_response=True) as response:
            if response.status_code == 200:
                self._remember(response.json()["short_url"])
                response.success()
            elif response.status_code == 409:
                response.success()
            else:
                response.failure(f"unexpected status {response.status_code}")

    @task(8)
    def redirect(self) -> None:
        if not self.codes:
            self.create_short_url()
            return

        short_code = random.choice(self.codes)
        self.client.get(f"/{short_code}", name="GET /:short_code", allow_redirects=False)

    @task(1)
    def stats(self) -> None:
        if not self.codes:
            self.create_short_url()
            return

        short_code = random.choice(self.codes)
        self.client.get(f"/api/stats/{short_code}", name="GET /api/stats/:short_code")
