#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from pathlib import Path
from typing import Any, Dict, List, Optional
import datetime
import io
import logging
import sys

from flask import Flask, jsonify, render_template, request, send_file, Response

from constants import PROBE_TIMEOUT, RESULTS_FILE
from generator import (
    InvalidNameError,
    UnknownCategoryError,
    generate_candidates,
    list_categories,
)
from scanner import to_csv_bytes, validate_candidates
from session import ScanSession

app = Flask(__name__)

# single in-memory session backing the page
SCAN_SESSION = ScanSession()


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


@app.route("/")
def index():
    return render_template("index.html", categories=list_categories(), timeout=PROBE_TIMEOUT)


@app.route("/categories", methods=["GET"])
def categories():
    return jsonify({"categories": list_categories()})


@app.route("/scan", methods=["POST"])
def scan():
    data = _payload()
    name = str(data.get("name") or "")
    category = str(data.get("category") or "")
    try:
        total = SCAN_SESSION.start_scan(name, category)
    except (InvalidNameError, UnknownCategoryError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"status": "scanning", "total": total}), 202


@app.route("/status", methods=["GET"])
def status():
    return jsonify(SCAN_SESSION.snapshot(region=request.args.get("region")))


@app.route("/filter", methods=["POST"])
def set_filter():
    region = _payload().get("region") or None
    SCAN_SESSION.set_region_filter(region)
    return jsonify(SCAN_SESSION.snapshot())


@app.route("/cancel", methods=["POST"])
def cancel():
    SCAN_SESSION.cancel()
    return jsonify(SCAN_SESSION.snapshot())


@app.route("/reset", methods=["POST"])
def reset():
    SCAN_SESSION.reset()
    return jsonify(SCAN_SESSION.snapshot())


@app.route("/links", methods=["GET"])
def links():
    text = SCAN_SESSION.links(
        region=request.args.get("region"),
        category=request.args.get("category") or None,
    )
    return Response(text, mimetype="text/plain")


@app.route("/download_csv", methods=["GET"])
def download_csv():
    csv_bytes = SCAN_SESSION.csv_bytes(region=request.args.get("region"))
    ts = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d_%H%M%S")
    mem = io.BytesIO(csv_bytes)
    mem.seek(0)
    return send_file(
        mem,
        mimetype="text/csv; charset=utf-8",
        as_attachment=True,
        download_name=f"assets_{ts}.csv",
    )


# ---------- Batch scan (CLI) ----------
def run_batch_scan(name: str, category: str, output: Path = RESULTS_FILE) -> List[Dict[str, Any]]:
    candidates = generate_candidates(name, category)
    print(f"[..] Probing {len(candidates)} candidate links for {name!r} ({category})")

    last: Dict[str, Optional[int]] = {"percent": None}

    def _print_progress(percent: int) -> None:
        if percent != last["percent"]:
            last["percent"] = percent
            print(f"     {percent:3d}%")

    outcome = validate_candidates(candidates, on_progress=_print_progress)
    results = outcome["results"]
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(to_csv_bytes(results))
    print(f"[OK] {len(results)} working links written to {output}")
    return [dict(r) for r in results]


# ---------- CLI entry ----------
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if len(sys.argv) > 1 and sys.argv[1] == "--batch":
        if len(sys.argv) < 4:
            raise SystemExit("Usage: python app.py --batch NAME CATEGORY [OUTPUT]")
        out_path = Path(sys.argv[4]) if len(sys.argv) > 4 else RESULTS_FILE
        try:
            run_batch_scan(sys.argv[2], sys.argv[3], out_path)
        except (InvalidNameError, UnknownCategoryError) as exc:
            raise SystemExit(str(exc))

    else:
        app.run(host="0.0.0.0", port=8080, debug=True)
