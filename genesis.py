"""
Database Initialization Script

This script initializes the database with the people and families
tables. With --demo it also seeds a small three-generation family
through the graph engine.

Usage:
    python genesis.py [--demo]
"""
import sys
from dotenv import load_dotenv
import db_utils as dbm
from graph_utils import GraphEngine
from err_utils import GenealogyError

# Load environment variables
load_dotenv(".env")


def seed_demo_family(engine: GraphEngine) -> int:
    """Create a small demo family; returns the number of people added"""
    male, female = dbm.Gender['male'], dbm.Gender['female']

    root = engine.add_person({'display_name': 'Nguyễn Văn Tổ', 'gender': male, 'generation': 1,
                              'birth_year': 1900, 'death_year': 1975, 'is_living': False})
    wife = engine.add_person({'display_name': 'Trần Thị Lan', 'gender': female, 'birth_year': 1905,
                              'death_year': 1980, 'is_living': False, 'is_patrilineal': False},
                             spouse_handle=root['handle'])
    son = engine.add_person({'display_name': 'Nguyễn Văn An', 'gender': male, 'birth_year': 1930,
                             'death_year': 2010, 'is_living': False},
                            father_handle=root['handle'], mother_handle=wife['handle'])
    daughter = engine.add_person({'display_name': 'Nguyễn Thị Bình', 'gender': female, 'birth_year': 1934},
                                 father_handle=root['handle'], mother_handle=wife['handle'])
    daughter_in_law = engine.add_person({'display_name': 'Lê Thị Hoa', 'gender': female, 'birth_year': 1935,
                                         'is_patrilineal': False},
                                        spouse_handle=son['handle'])
    grandson = engine.add_person({'display_name': 'Nguyễn Văn Minh', 'gender': male, 'birth_year': 1960},
                                father_handle=son['handle'], mother_handle=daughter_in_law['handle'])
    granddaughter = engine.add_person({'display_name': 'Nguyễn Thị Mai', 'gender': female, 'birth_year': 1963},
                                     father_handle=son['handle'], mother_handle=daughter_in_law['handle'])
    return len([root, wife, son, daughter, daughter_in_law, grandson, granddaughter])


if __name__ == "__main__":
    print("🚀 Starting database initialization...")

    # Initialize database
    store = dbm.RecordStore()
    print(f"✅ Database ready: {store.db_file}")

    if '--demo' in sys.argv[1:]:
        print("\n👪 Seeding demo family...")
        if store.count('people'):
            print("❌ Error: the people table is not empty, demo family not added")
            sys.exit(1)
        try:
            count = seed_demo_family(GraphEngine(store))
        except GenealogyError as e:
            print(f"❌ Error seeding demo family: {e}")
            sys.exit(1)
        print(f"✅ Added {count} people")

    print("\n✨ Database setup completed successfully!")
