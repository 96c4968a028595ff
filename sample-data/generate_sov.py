#!/usr/bin/env python3
"""
Generates sample-data/broker_sov.xlsx, a broker statement of values laid out
the way real submissions arrive, for exercising sov-doctor.

Run from the repo root:
    python sample-data/generate_sov.py

What is baked in:
  Sheet "Summary"
    - Cover sheet with portfolio totals (should be skipped)
  Sheet "NSW Locations"
    - Broker-style headers ("Loc #", "Street Address", "PD Value", "BI Value", "TIV")
    - Currency strings with symbols and thousands separators
    - One negative PD value, one TIV that does not reconcile with PD + BI
    - One blank row in the middle of the data
  Sheet "VIC Locations"
    - Same column layout as NSW, so both sheets merge cleanly
    - A latitude outside [-90, 90] and a year built before 1800
  Sheet "Template"
    - Two-row example sheet that should not be treated as data
"""

from pathlib import Path
import openpyxl

OUTPUT = Path(__file__).parent / "broker_sov.xlsx"

HEADERS = [
    "Loc #", "Property Name", "Street Address", "Suburb", "State", "Postcode",
    "Occupancy", "Construction", "Year Built", "No. of Stories",
    "PD Value", "BI Value", "TIV", "Latitude", "Longitude", "Flood Zone",
]

wb = openpyxl.Workbook()

# ── Sheet 1: Summary ─────────────────────────────────────────────────────────
ws = wb.active
ws.title = "Summary"
ws.append(["Portfolio summary"])
ws.append(["Locations", 6])
ws.append(["Total TIV", "$31,050,000"])
ws.append(["Prepared by", "Acme Broking"])

# ── Sheet 2: NSW Locations ───────────────────────────────────────────────────
ws_nsw = wb.create_sheet("NSW Locations")
ws_nsw.append(HEADERS)
nsw_rows = [
    # loc name             address             suburb        st     pc      occupancy     construction  yr    st  pd              bi            tiv            lat        lon       flood
    [1, "Head Office",     "1 George St",      "Sydney",     "NSW", "2000", "Office",     "Concrete",   1998, 12, "$5,000,000",   "$1,000,000", "$6,000,000",  -33.8688,  151.2093, "Low"],
    [2, "Parramatta DC",   "20 Church St",     "Parramatta", "NSW", "2150", "Warehouse",  "Steel",      2005, 1,  "AUD 3,200,000", 800000,      4000000,       -33.8150,  151.0011, "Medium"],
    [None] * len(HEADERS),
    [3, "Newcastle Store", "5 Hunter St",      "Newcastle",  "NSW", "2300", "Retail",     "Brick",      1975, 2,  "(250,000)",    100000,       900000,        -32.9283,  151.7817, "High"],
]
for row in nsw_rows:
    ws_nsw.append(row)

# ── Sheet 3: VIC Locations ───────────────────────────────────────────────────
ws_vic = wb.create_sheet("VIC Locations")
ws_vic.append(HEADERS)
vic_rows = [
    [4, "Melbourne Office", "100 Collins St",  "Melbourne",  "VIC", "3000", "Office",     "Concrete",   2010, 30, 8000000,        2000000,      10000000,      -37.8136,  144.9631, "Low"],
    [5, "Geelong Plant",    "7 Corio Quay",    "Geelong",    "VIC", "3220", "Industrial", "Steel",      1750, 1,  4500000,        500000,       5000000,       -38.1499,  144.3617, "Medium"],
    [6, "Ballarat Depot",   "3 Sturt St",      "Ballarat",   "VIC", "3350", "Warehouse",  "Timber",     1990, 1,  3000000,        150000,       "",            -137.5622, 143.8503, "Low"],
]
for row in vic_rows:
    ws_vic.append(row)

# ── Sheet 4: Template ────────────────────────────────────────────────────────
ws_template = wb.create_sheet("Template")
ws_template.append(["Location", "Address", "Value"])
ws_template.append(["Example", "1 Example St", 0])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
