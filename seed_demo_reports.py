"""
Seed demo reports by POSTing to the /report API.

Run with the API already running (python run_api.py). Optionally set DISTRESS_API_URL in env.
The four FIRE reports sit within ~50 m of each other, so the fourth one finds three
unresolved priors and escalates the cluster. A MEDICAL report nearby afterwards stays
unresolved: categories never mix.
Usage: python seed_demo_reports.py
"""

import os
import time

import httpx

DISTRESS_API_URL = (os.environ.get("DISTRESS_API_URL") or "http://localhost:8000").rstrip("/")

DEMO_REPORTS = [
    {"keyword": "fire", "description": "Smoke coming out of the kitchen window", "lat": 51.50740, "lng": -0.12780},
    {"keyword": "fire", "description": "Flames visible on the second floor", "lat": 51.50755, "lng": -0.12800},
    {"keyword": "fire", "description": "People shouting fire near the corner shop", "lat": 51.50728, "lng": -0.12765},
    {"keyword": "fire", "description": "Fire alarm going off, building evacuating", "lat": 51.50762, "lng": -0.12790},
]
DEMO_MEDICAL = {"keyword": "medical", "description": "Someone collapsed outside the station", "lat": 51.50745, "lng": -0.12785}


def _payload(item: dict, category: str, severity: str) -> dict:
    return {
        "keyword": item["keyword"],
        "description": item["description"],
        "category": category,
        "severity": severity,
        "latitude": item["lat"],
        "longitude": item["lng"],
        "source": "MANUAL",
    }


def main():
    print(f"Seeding demo reports via {DISTRESS_API_URL}/report")
    payloads = [_payload(item, "FIRE", "HIGH") for item in DEMO_REPORTS]
    payloads.append(_payload(DEMO_MEDICAL, "MEDICAL", "MEDIUM"))
    client = httpx.Client(timeout=60.0)
    try:
        for i, payload in enumerate(payloads):
            r = client.post(
                f"{DISTRESS_API_URL}/report",
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            if r.is_success:
                data = r.json()
                esc = data.get("escalation") or {}
                print(
                    f"  [{i+1}/{len(payloads)}] report_id={data['report']['id']} category={payload['category']} "
                    f"escalated={esc.get('escalated')} reason={esc.get('reason')}"
                )
            else:
                print(f"  [{i+1}/{len(payloads)}] FAILED {r.status_code} {r.text[:200]}")
            time.sleep(0.3)
        print("Done. GET /reports?unresolved=true to see what is still open.")
    finally:
        client.close()


if __name__ == "__main__":
    main()
