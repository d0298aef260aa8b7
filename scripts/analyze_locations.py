#!/usr/bin/env python3
"""
Script to analyze a batch of places against a running Terra Region API
Uses /region/search for each place and prints a risk summary
"""
import argparse
import json
import time

import requests


def analyze_location(query, overlay="combined", base_url="http://localhost:8000"):
    """
    Make a single region search request

    Args:
        query: Place name
        overlay: Overlay used for fill color and legend
        base_url: Base URL of the API server
    """
    url = f"{base_url}/region/search"
    params = {"q": query, "overlay": overlay}

    try:
        response = requests.get(url, params=params, timeout=120)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        print(f"Error making request for {query}: {e}")
        if hasattr(e, 'response') and e.response is not None:
            print(f"Response status: {e.response.status_code}")
            print(f"Response body: {e.response.text}")
        return None


def summarize(result):
    """Compact one-place summary of a /region response."""
    region = result.get("region") or {}
    cards = {card["title"]: card["value"] for card in result.get("cards", [])}
    return {
        "name": region.get("name"),
        "lat": region.get("lat"),
        "lng": region.get("lng"),
        "has_geometry": (result.get("overlay") or {}).get("has_geometry", False),
        "cards": cards,
        "urban_risk_score": result.get("urban_risk_score"),
        "habitability": result.get("habitability"),
    }


def analyze_locations(queries, overlay="combined", base_url="http://localhost:8000", delay=2):
    """
    Analyze multiple places sequentially

    Args:
        queries: List of place names
        overlay: Overlay used for every request
        base_url: Base URL of the API server
        delay: Delay between requests in seconds (Nominatim is rate limited)
    """
    print(f"Making region requests to {base_url}/region/search")
    print(f"Places: {queries}")
    print("-" * 80)

    results = []
    for i, query in enumerate(queries):
        print(f"\n[{i+1}/{len(queries)}] Processing: {query}")
        result = analyze_location(query, overlay, base_url)
        if result:
            results.append({"query": query, "success": True, "summary": summarize(result)})
            print("✓ Success")
        else:
            results.append({"query": query, "success": False, "summary": None})
            print("✗ Failed")

        if i < len(queries) - 1:
            time.sleep(delay)

    print("\n" + "=" * 80)
    print("BATCH SUMMARY")
    print("=" * 80)
    print(json.dumps(results, indent=2, ensure_ascii=False))

    return results


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Analyze climate risk for a list of places")
    parser.add_argument("places", nargs="*", default=["Jakarta", "Lagos", "Dhaka", "Rotterdam"])
    parser.add_argument("--overlay", default="combined")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--delay", type=float, default=2)
    args = parser.parse_args()

    analyze_locations(args.places, overlay=args.overlay, base_url=args.base_url, delay=args.delay)
