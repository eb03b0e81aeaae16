#!/usr/bin/env python3
"""
OLX Region API
==============

Thin HTTP front end over the scraper:
- GET /region_list                 neighborhoods of the configured region
- GET /region/<sub_region>         ads of a neighborhood (whole region when omitted)
"""

import asyncio

from flask import Flask, jsonify

from olx_config import config
from olx_scraper import extract_neighborhoods, extract_region

ERROR_MESSAGE = "An error occurred while fetching data."

app = Flask(__name__)
app.json.sort_keys = False


@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint"""
    return jsonify({"status": "healthy", "service": "OLX Region API"})


@app.route("/region_list", methods=["GET"])
def region_list():
    """GET /region_list - Every neighborhood of the region, name -> slug"""
    try:
        result = asyncio.run(extract_neighborhoods(config.REGION_LINK))
        return jsonify(result), 200
    except Exception as e:
        print(f"❌ Neighborhood extraction failed: {e}")
        return jsonify({"error": ERROR_MESSAGE}), 500


@app.route("/region/", defaults={"sub_region": None}, methods=["GET"])
@app.route("/region/<sub_region>", methods=["GET"])
def region(sub_region):
    """GET /region/{sub_region} - Ads of a sub-region, or of the whole region"""
    try:
        link = config.REGION_LINK + (sub_region or "")
        result = asyncio.run(extract_region(link, max_tabs=config.MAX_TABS, show_progress=False))
        return jsonify(result.to_dict()), 200
    except Exception as e:
        print(f"❌ Region extraction failed for {sub_region or 'whole region'}: {e}")
        return jsonify({"msg": ERROR_MESSAGE, "error": str(e)}), 500


def main() -> None:
    print(f"🚀 OLX Region API running on http://{config.HOST}:{config.PORT}")
    print(f"⚙️  Settings: {config.to_dict()}")
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)


if __name__ == "__main__":
    main()
