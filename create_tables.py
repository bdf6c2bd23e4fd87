#!/usr/bin/env python3
"""
Create the database tables (animes, reviews, users) without starting the server
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from anime_app import create_app
from anime_app.extensions import db


def create_tables():
    app = create_app()
    with app.app_context():
        print("Creating missing tables...")
        db.create_all()
        print("Tables created successfully!")

        inspector = db.inspect(db.engine)
        tables = inspector.get_table_names()
        print(f"Existing tables: {tables}")

        # The uniqueness guards the services rely on
        for table, column in (("animes", "annict_id"), ("reviews", "user_id, anime_id")):
            if table not in tables:
                continue
            uniques = inspector.get_unique_constraints(table)
            indexes = [i for i in inspector.get_indexes(table) if i.get("unique")]
            names = [u["column_names"] for u in uniques] + [i["column_names"] for i in indexes]
            print(f"{table} unique keys: {names} (expected {column})")


if __name__ == "__main__":
    create_tables()
