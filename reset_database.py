import os
import database


def reset_database():
    """Completely reset the database; only the administrator account is recreated"""

    # Remove existing database
    if os.path.exists(database.DATABASE_PATH):
        os.remove(database.DATABASE_PATH)
        print("Old database removed")

    database.init_db()
    print("Database reset successfully!")
    print("Only admin user created:")
    print(f"Email: {os.getenv('ADMIN_EMAIL', 'admin@school.com')}")


if __name__ == '__main__':
    reset_database()
