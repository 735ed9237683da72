"""
Load Test for Double M Arena.

Simulates players browsing teams and profiles and hitting the login
endpoint. Seed accounts must exist and be verified before running:

    ARENA_LOAD_EMAIL=player@example.com ARENA_LOAD_PASSWORD=... \
        locust -f locustfile.py -u 200 -r 20 --host http://localhost:8000
"""

import os
import random

from locust import HttpUser, between, events, task


# ============== Configuration ==============

LOAD_EMAIL = os.getenv("ARENA_LOAD_EMAIL", "player@example.com")
LOAD_PASSWORD = os.getenv("ARENA_LOAD_PASSWORD", "password123")

SEARCH_TERMS = ["sha", "fox", "wolf", "ace", "pro"]

# Cache for discovered team ids
_cached_team_ids = []


def check_status(response, allowed):
    """Mark a response as failed unless its status is allowed or rate limited."""
    if response.status_code in allowed or response.status_code == 429:
        response.success()
    else:
        response.failure(f"Unexpected status: {response.status_code}")


# ============== Player Load Test User ==============

class PlayerUser(HttpUser):
    """
    Simulates a logged-in player.

    Behaviors:
    - Browse the team directory
    - View their own team
    - Search for players
    """

    wait_time = between(1, 5)

    def on_start(self):
        """Log in once and keep the bearer token."""
        self.headers = {}
        response = self.client.post(
            "/api/login",
            json={"email": LOAD_EMAIL, "password": LOAD_PASSWORD},
            name="POST /api/login",
        )
        if response.status_code == 200:
            token = response.json()["access_token"]
            self.headers = {"Authorization": f"Bearer {token}"}

    @task(10)
    def list_teams(self):
        with self.client.get(
            "/api/teams",
            headers=self.headers,
            name="GET /api/teams",
            catch_response=True,
        ) as response:
            if response.status_code == 200:
                _cached_team_ids[:] = [team["id"] for team in response.json()["teams"]][:50]
            check_status(response, [200, 404])

    @task(5)
    def view_team(self):
        if not _cached_team_ids:
            return
        team_id = random.choice(_cached_team_ids)
        with self.client.get(
            f"/api/teams/{team_id}",
            headers=self.headers,
            name="GET /api/teams/{id}",
            catch_response=True,
        ) as response:
            check_status(response, [200, 404])

    @task(5)
    def my_team(self):
        with self.client.get(
            "/api/my-team",
            headers=self.headers,
            name="GET /api/my-team",
            catch_response=True,
        ) as response:
            # Players without a team get 404
            check_status(response, [200, 404])

    @task(3)
    def search_users(self):
        with self.client.get(
            f"/api/users?name={random.choice(SEARCH_TERMS)}&limit=10",
            name="GET /api/users",
            catch_response=True,
        ) as response:
            check_status(response, [200])


# ============== Login Burst User ==============

class LoginBurstUser(HttpUser):
    """
    Hammers the login endpoint to exercise rate limiting.
    """

    wait_time = between(0.1, 0.5)

    @task
    def bad_login(self):
        with self.client.post(
            "/api/login",
            json={"email": LOAD_EMAIL, "password": "wrong-password"},
            name="Burst: POST /api/login",
            catch_response=True,
        ) as response:
            check_status(response, [401])


# ============== Health Check User ==============

class HealthCheckUser(HttpUser):
    wait_time = between(10, 30)

    @task
    def health_check(self):
        with self.client.get("/health", name="GET /health", catch_response=True) as response:
            check_status(response, [200])


# ============== Load Test Events ==============

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary statistics."""
    stats = environment.stats.total
    if stats.num_requests:
        print("\n=== Load Test Summary ===")
        print(f"Total requests: {stats.num_requests}")
        print(f"Total failures: {stats.num_failures}")
        print(f"Avg response time: {stats.avg_response_time:.2f}ms")
        print(f"Requests per second: {stats.total_rps:.2f}")
