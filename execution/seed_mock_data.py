"""Seed the database with realistic mock data for development and demos.

Creates:
  - 3 users besides the default admin (password "password123")
  - 20 electronic components stocked in through the stock engine
  - 3 BOMs, one of them executed once
  - 5 service orders in different statuses, two with parts used

Run:
    python -m execution.seed_mock_data          (from project root)
    python execution/seed_mock_data.py          (direct)

WARNING: This script INSERTS data — run against a fresh DB to avoid
duplicates. Delete data/inventory.db first for a clean start.
"""

import os
import sys
from datetime import datetime, timedelta

# Ensure project src is on the path
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(_ROOT, "src"))

from stock_ledger.access import Principal
from stock_ledger.app import AppContext, build_context

PASSWORD = "password123"


def seed(ctx: AppContext):
    """Populate the database with mock data."""

    admin = Principal.from_user(ctx.repo.get_user_by_id(1))

    # ── 1. Users ──────────────────────────────────────────────────
    print("Creating users...")
    users = [
        ("budi", "Budi Santoso", "user"),
        ("sari", "Sari Wulandari", "user"),
        ("rudi", "Rudi Hartono", "admin"),
    ]
    user_ids = {}
    for username, full_name, role in users:
        user_ids[username] = ctx.access.create_user(
            admin, username, PASSWORD, full_name=full_name, role=role
        )
    tech = Principal.from_user(ctx.repo.get_user_by_id(user_ids["budi"]))
    print(f"  → {len(users)} users created")

    # ── 2. Items ──────────────────────────────────────────────────
    print("Stocking items...")
    # (name, footprint, part number, category, qty, location, item type)
    items_data = [
        ("Resistor 10k", "0805", "RC0805FR-0710KL", "Resistor", 500, "Drawer A1", "consumable"),
        ("Resistor 1k", "0805", "RC0805FR-071KL", "Resistor", 400, "Drawer A1", "consumable"),
        ("Resistor 10k", "THT", "CFR-25JB-10K", "Resistor", 200, "Drawer A2", "consumable"),
        ("Capacitor 100nF", "0603", "CL10B104KB8NNNC", "Capacitor", 800, "Drawer B1", "consumable"),
        ("Capacitor 10uF", "0805", "CL21A106KAYNNNE", "Capacitor", 300, "Drawer B1", "consumable"),
        ("Electrolytic 470uF 25V", "Radial", "EEU-FR1E471", "Capacitor", 60, "Drawer B3", "consumable"),
        ("LED Red", "0805", "LTST-C170KRKT", "LED", 250, "Drawer C1", "consumable"),
        ("LED Green", "0805", "LTST-C170KGKT", "LED", 3, "Drawer C1", "consumable"),
        ("ESP32-WROOM-32E", "Module", "ESP32-WROOM-32E-N4", "MCU", 25, "Shelf 2", "component"),
        ("ATmega328P", "TQFP-32", "ATMEGA328P-AU", "MCU", 40, "Shelf 2", "component"),
        ("AMS1117-3.3", "SOT-223", "AMS1117-3.3", "Regulator", 120, "Drawer D1", "component"),
        ("LM7805", "TO-220", "L7805CV", "Regulator", 4, "Drawer D2", "component"),
        ("1N4007", "DO-41", "1N4007", "Diode", 300, "Drawer D3", "consumable"),
        ("USB-C Receptacle", "SMD", "USB4085-GF-A", "Connector", 80, "Drawer E1", "component"),
        ("Pin Header 1x40", "2.54mm", "PH1-40-UA", "Connector", 50, "Drawer E2", "consumable"),
        ("Tactile Switch", "6x6mm", "TS-1187A", "Switch", 150, "Drawer E3", "consumable"),
        ("Crystal 16MHz", "HC-49S", "ABLS-16.000MHZ", "Crystal", 35, "Drawer F1", "component"),
        ("Solder Wire 0.8mm", "", "SN63-0.8", "Consumable", 6, "Bench", "consumable"),
        ("Multimeter Probe Set", "", "", "Tool", 2, "Tool Wall", "tool"),
        ("Hot Air Nozzle 8mm", "", "", "Tool", 1, "Tool Wall", "tool"),
    ]
    item_ids = {}
    for name, fp, pn, cat, qty, loc, item_type in items_data:
        result = ctx.stock.stock_in(
            admin, name, qty, footprint=fp, part_number=pn, category=cat,
            location=loc, item_type=item_type, project_ref="Initial stock",
        )
        item_ids[(name, fp)] = result.item_id
    print(f"  → {len(items_data)} items stocked")

    # A few movements so the history is not only IN rows
    ctx.stock.stock_out(admin, item_ids[("Resistor 10k", "0805")], 20,
                        project_ref="Prototype rev A")
    ctx.stock.move(admin, item_ids[("ESP32-WROOM-32E", "Module")],
                   "Dry Cabinet", notes="Moisture sensitive")

    # ── 3. BOMs ───────────────────────────────────────────────────
    print("Creating BOMs...")
    boms_data = [
        ("ESP32 Sensor Board", "Temperature/humidity node", [
            (("ESP32-WROOM-32E", "Module"), 1),
            (("AMS1117-3.3", "SOT-223"), 1),
            (("Capacitor 100nF", "0603"), 4),
            (("Capacitor 10uF", "0805"), 2),
            (("Resistor 10k", "0805"), 3),
            (("LED Red", "0805"), 1),
            (("USB-C Receptacle", "SMD"), 1),
        ]),
        ("Arduino Minimal", "ATmega328P on a breadboard", [
            (("ATmega328P", "TQFP-32"), 1),
            (("Crystal 16MHz", "HC-49S"), 1),
            (("Capacitor 100nF", "0603"), 2),
            (("Resistor 10k", "THT"), 1),
            (("Tactile Switch", "6x6mm"), 1),
        ]),
        ("5V Power Supply", "Linear 5V rail", [
            (("LM7805", "TO-220"), 1),
            (("Electrolytic 470uF 25V", "Radial"), 2),
            (("1N4007", "DO-41"), 4),
            (("LED Green", "0805"), 1),
        ]),
    ]
    bom_ids = {}
    for name, description, lines in boms_data:
        bom_ids[name] = ctx.boms.create_bom(admin, name, description, [
            {"item_id": item_ids[key], "qty": qty} for key, qty in lines
        ])
    ctx.boms.execute_bom(admin, bom_ids["ESP32 Sensor Board"],
                         "Greenhouse monitor", multiplier=5)
    print(f"  → {len(boms_data)} BOMs created, 1 executed")

    # ── 4. Service orders ─────────────────────────────────────────
    print("Creating service orders...")
    now = datetime.now()
    orders_data = [
        ("Laptop Asus X441", "ASX441-7781", "Andi Pratama", "0812-1111-2222",
         "Does not power on", "pending", "high", now + timedelta(days=3)),
        ("Power Supply 12V 5A", "", "Toko Makmur", "0813-3333-4444",
         "Output voltage drops under load", "in_progress", "medium",
         now + timedelta(days=5)),
        ("Arduino Uno Clone", "", "Dewi Lestari", "dewi@example.com",
         "Bootloader corrupted", "waiting_parts", "low",
         now - timedelta(days=2)),
        ("LED Driver Board", "LDB-22", "CV Terang", "0815-5555-6666",
         "Flickering output", "testing", "urgent", now + timedelta(days=1)),
        ("Bench Multimeter", "MM-9001", "Lab Elektronika", "",
         "Calibration and fuse replacement", "completed", "medium", None),
    ]
    order_ids = []
    for item, serial, customer, contact, complaint, status, priority, due in orders_data:
        order_ids.append(ctx.services.create_order(
            admin, item, customer, complaint,
            serial_number=serial, customer_contact=contact,
            status=status, priority=priority, due_date=due,
            technician_id=user_ids["budi"], cost_estimate=150000,
        ))
    ctx.services.add_part(tech, order_ids[1],
                          item_ids[("Electrolytic 470uF 25V", "Radial")], 2)
    ctx.services.add_part(tech, order_ids[3],
                          item_ids[("AMS1117-3.3", "SOT-223")], 1)
    print(f"  → {len(orders_data)} service orders created")

    # ── Done ──────────────────────────────────────────────────────
    print("\n✓ Mock data seeded successfully!")
    print(f"  Users: {len(users)} (all password {PASSWORD})")
    print(f"  Items: {len(items_data)}")
    print(f"  BOMs: {len(boms_data)}")
    print(f"  Service orders: {len(orders_data)}")


def main():
    from stock_ledger.config import Config
    db_path = Config.DATABASE_PATH
    print(f"Database: {db_path}")

    # Confirm if DB exists
    if os.path.exists(db_path):
        resp = input("Database already exists. Seed anyway? (y/N): ").strip().lower()
        if resp != "y":
            print("Aborted.")
            return

    seed(build_context(db_path))


if __name__ == "__main__":
    main()
