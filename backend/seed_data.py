"""Seed database with demo users and laptops."""
from laptop_checkout.database import Base, SessionLocal, engine
from laptop_checkout.models import Laptop, User
from laptop_checkout.auth import get_password_hash
from laptop_checkout.services.qr_codes import laptop_qr_data_url
import uuid


def seed():
    """Seed database with demo data."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        if db.query(User).filter(User.email == "admin@example.com").first():
            print("Database already seeded, skipping.")
            return

        # Create users
        users_data = [
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000101'),
                'email': 'admin@example.com',
                'password': 'admin12345',
                'name': 'Admin User',
                'role': 'admin',
                'group_name': 'Operations',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000102'),
                'email': 'interviewer1@example.com',
                'password': 'interviewer123',
                'name': 'Interviewer One',
                'role': 'interviewer',
                'group_name': 'Field',
                'team': 'North',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000103'),
                'email': 'interviewer2@example.com',
                'password': 'interviewer123',
                'name': 'Interviewer Two',
                'role': 'interviewer',
                'group_name': 'Field',
                'team': 'South',
            },
        ]

        for user_data in users_data:
            password = user_data.pop('password')
            db.add(User(password_hash=get_password_hash(password), **user_data))

        # Create laptops with fixed ids so printed QR labels stay valid across reseeds
        laptops_data = [
            ('LAP-0001', 'SN-DEMO-0001', 'Dell', 'Latitude 5440'),
            ('LAP-0002', 'SN-DEMO-0002', 'Lenovo', 'ThinkPad T14'),
            ('LAP-0003', 'SN-DEMO-0003', 'HP', 'EliteBook 840'),
            ('LAP-0004', 'SN-DEMO-0004', 'Apple', 'MacBook Air M2'),
        ]
        for unique_id, serial_number, make, model in laptops_data:
            db.add(Laptop(
                unique_id=unique_id,
                serial_number=serial_number,
                make=make,
                model=model,
                status='available',
                qr_code_url=laptop_qr_data_url(unique_id),
            ))

        db.commit()
        print("Database seeded successfully!")
        print("\nDemo users:")
        print("  admin@example.com / admin12345 (Administrator)")
        print("  interviewer1@example.com / interviewer123 (Interviewer)")
        print("  interviewer2@example.com / interviewer123 (Interviewer)")

    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
