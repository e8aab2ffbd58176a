import httpx
import asyncio
import sys

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
USER = {"X-User-Id": "verifier"}

async def run_verification():
    print(f"🚀  Starting Verification against {BASE_URL}...\n")

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=10.0) as client:
        # 1. Health Check
        print("1. [Health] Checking /health...")
        try:
            resp = await client.get("/health")
            if resp.status_code == 200 and resp.json() == {"status": "ok"}:
                print("   ✅  Health Check Passed")
            else:
                print(f"   ❌  Health Check Failed: {resp.text}")
                return
        except Exception as e:
            print(f"   ❌  Connection Error: {e}")
            return

        # 2. Create Link (anonymous)
        print("\n2. [API] Creating Short Link...")
        long_url = "https://www.example.com/verify"
        resp = await client.post("/", json={"URL": long_url})
        if resp.status_code == 200:
            short_code = resp.json()["shortCode"]
            print(f"   ✅  Created: {short_code}")
        else:
            print(f"   ❌  Create Failed: {resp.status_code} {resp.text}")
            return

        resp = await client.post("/", json={"URL": "not-a-url"})
        if resp.status_code == 400:
            print("   ✅  Invalid URL rejected")
        else:
            print(f"   ❌  Invalid URL accepted: {resp.status_code}")

        # 3. Verify Redirect
        print("\n3. [API] Verifying Redirect...")
        resp = await client.get(f"/{short_code}", follow_redirects=False)
        if resp.status_code == 302 and resp.headers.get("location") == long_url:
            print(f"   ✅  Redirect Location matches: {resp.headers['location']}")
        else:
            print(f"   ❌  Redirect Failed: {resp.status_code} {resp.headers.get('location')}")

        # 4. Verify Stats
        print("\n4. [API] Verifying Stats...")
        await asyncio.sleep(1)
        resp = await client.get(f"/stats/{short_code}")
        if resp.status_code == 200:
            visited = resp.json()["visited"]
            if visited > 0:
                print(f"   ✅  Visit Count updated: {visited}")
            else:
                print(f"   ⚠️  Visit Count not updated (Background worker might be slow): {visited}")
        else:
            print(f"   ❌  Stats Failed: {resp.status_code}")

        # 5. Links by id
        print("\n5. [API] Verifying Links by Id...")
        resp = await client.get("/links-by-id", params=[("ids", short_code), ("ids", "zzzzzz")])
        if resp.status_code == 200 and [l["shortCode"] for l in resp.json()] == [short_code]:
            print("   ✅  Links by Id Passed")
        else:
            print(f"   ❌  Links by Id Failed: {resp.status_code} {resp.text}")

        # 6. Ownership sync
        print("\n6. [API] Verifying Ownership Sync...")
        resp = await client.get("/links")
        if resp.status_code == 403:
            print("   ✅  Anonymous /links rejected")
        else:
            print(f"   ❌  Anonymous /links allowed: {resp.status_code}")

        await client.put("/sync", json=[short_code], headers=USER)
        resp = await client.get("/links", headers=USER)
        if resp.status_code == 200 and short_code in [l["shortCode"] for l in resp.json()]:
            print("   ✅  Link claimed by user")
        else:
            print(f"   ❌  Sync Failed: {resp.status_code} {resp.text}")

        # 7. Metrics
        print("\n7. [Observability] Verifying Metrics...")
        resp = await client.get("/metrics")
        if resp.status_code == 200 and "visits_recorded_total" in resp.text:
            print("   ✅  Metrics Endpoint Exposed")
        else:
            print(f"   ❌  Metrics Failed: {resp.status_code}")

    print("\n✨ Verification Complete!")

if __name__ == "__main__":
    asyncio.run(run_verification())
