"""
Seed script for the activity enrollment backend.
Populates the database with demo accounts, venues, activities and enrollments.
"""

import asyncio
import sys
from datetime import date, time
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.models.activity import Activity, ActivitySchedule, Venue, Weekday
from app.models.badge import SkillBadge
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.student import Student
from app.models.user import Role, User
from app.utils.security import hash_password
from core.config import config

M, T, W, TH, F, SA = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
)


class DataSeeder:
    """Seed data generator."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = {}
        self.venues = {}
        self.activities = {}
        self.students = {}

    async def seed_all(self):
        """Seed all data."""
        print("🌱 Starting database seeding...")
        try:
            await self.seed_users()
            await self.seed_venues()
            await self.seed_activities()
            await self.seed_students()
            await self.seed_enrollments()
            await self.seed_badges()
            print("\n✅ Database seeding completed successfully!")
        except Exception as e:
            print(f"\n❌ Error during seeding: {e}")
            raise

    async def seed_users(self):
        """Create users with all roles."""
        print("👥 Seeding users...")

        users_data = [
            {
                "email": "admin@school.edu",
                "password": "Admin123!",
                "first_name": "Admin",
                "last_name": "User",
                "role": Role.ADMIN,
            },
            {
                "email": "john.smith@school.edu",
                "password": "Coach123!",
                "first_name": "John",
                "last_name": "Smith",
                "role": Role.COACH,
                "phone": "+1-555-0101",
            },
            {
                "email": "sarah.davis@school.edu",
                "password": "Coach123!",
                "first_name": "Sarah",
                "last_name": "Davis",
                "role": Role.COACH,
                "phone": "+1-555-0102",
            },
            {
                "email": "parent@school.edu",
                "password": "Parent123!",
                "first_name": "Jennifer",
                "last_name": "Brown",
                "role": Role.PARENT,
            },
            {
                "email": "alex.kumar@school.edu",
                "password": "Student123!",
                "first_name": "Alex",
                "last_name": "Kumar",
                "role": Role.STUDENT,
            },
        ]

        created = 0
        for user_data in users_data:
            existing_user = await User.get_by_email(self.session, user_data["email"])
            if existing_user:
                print(f"  User {user_data['email']} already exists, skipping")
                self.users[user_data["email"]] = existing_user
                continue

            password = user_data.pop("password")
            user = User(**user_data, hashed_password=hash_password(password), is_active=True)
            self.session.add(user)
            self.users[user_data["email"]] = user
            created += 1

        await self.session.commit()
        print(f"  Created {created} new users, {len(users_data) - created} already existed")

    async def seed_venues(self):
        """Create venues."""
        print("🏟️  Seeding venues...")

        venues_data = [
            {"name": "Main Gymnasium", "venue_type": "sports", "capacity": 50, "location": "Building A, Ground Floor"},
            {"name": "Music Room 1", "venue_type": "music", "capacity": 20, "location": "Building B, 2nd Floor"},
            {"name": "Art Studio", "venue_type": "art", "capacity": 25, "location": "Building C, 1st Floor"},
            {"name": "Dance Studio", "venue_type": "dance", "capacity": 30, "location": "Building A, 3rd Floor"},
            {"name": "Computer Lab 1", "venue_type": "technology", "capacity": 30, "location": "Building D, 2nd Floor"},
            {"name": "Auditorium", "venue_type": "drama", "capacity": 100, "location": "Building E, Ground Floor"},
            {"name": "Swimming Pool", "venue_type": "sports", "capacity": 40, "location": "Sports Complex"},
        ]

        for venue_data in venues_data:
            result = await self.session.execute(
                select(Venue).where(Venue.name == venue_data["name"])
            )
            venue = result.scalar_one_or_none()
            if not venue:
                venue = Venue(**venue_data)
                self.session.add(venue)
            self.venues[venue_data["name"]] = venue

        await self.session.commit()
        print(f"  {len(self.venues)} venues ready")

    async def seed_activities(self):
        """Create activities with weekly schedules."""
        print("⚽ Seeding activities...")

        john = self.users["john.smith@school.edu"]
        sarah = self.users["sarah.davis@school.edu"]

        activities_data = [
            ("Football Training", "sports", john, "Main Gymnasium", "Mon/Wed/Fri 4-6 PM",
             "Basic football skills and team play", 25, [M, W, F], time(16, 0), time(18, 0)),
            ("Basketball Club", "sports", sarah, "Main Gymnasium", "Tue/Thu 4-5:30 PM",
             "Basketball fundamentals and practice games", 20, [T, TH], time(16, 0), time(17, 30)),
            ("Guitar Classes", "music", None, "Music Room 1", "Wed 3-4 PM",
             "Learn acoustic guitar from beginner to intermediate", 15, [W], time(15, 0), time(16, 0)),
            ("Classical Dance", "dance", None, "Dance Studio", "Tue/Thu 5-6 PM",
             "Learn classical dance forms", 20, [T, TH], time(17, 0), time(18, 0)),
            ("Art & Painting", "art", None, "Art Studio", "Fri 3-5 PM",
             "Explore various art mediums and techniques", 15, [F], time(15, 0), time(17, 0)),
            ("Drama Club", "drama", None, "Auditorium", "Mon/Wed 5-6:30 PM",
             "Theatre, acting, and stage performance", 25, [M, W], time(17, 0), time(18, 30)),
            ("Robotics Club", "technology", None, "Computer Lab 1", "Sat 10-12 AM",
             "Build and program robots", 12, [SA], time(10, 0), time(12, 0)),
            ("Swimming", "sports", sarah, "Swimming Pool", "Mon/Wed/Fri 3-4 PM",
             "Swimming lessons for all levels", 15, [M, W, F], time(15, 0), time(16, 0)),
        ]

        created = 0
        for name, category, coach, venue_name, schedule, description, capacity, days, start, end in activities_data:
            result = await self.session.execute(select(Activity).where(Activity.name == name))
            activity = result.scalar_one_or_none()
            if activity:
                self.activities[name] = activity
                continue

            venue = self.venues[venue_name]
            activity = Activity(
                name=name,
                category=category,
                coach_id=coach.id if coach else None,
                venue=venue_name,
                schedule=schedule,
                description=description,
                capacity=capacity,
                schedules=[
                    ActivitySchedule(
                        venue_id=venue.id,
                        day_of_week=day,
                        start_time=start,
                        end_time=end,
                        effective_from=date.today(),
                    )
                    for day in days
                ],
            )
            self.session.add(activity)
            self.activities[name] = activity
            created += 1

        await self.session.commit()
        print(f"  Created {created} new activities")

    async def seed_students(self):
        """Create student records, linked to the parent and student accounts."""
        print("🎒 Seeding students...")

        parent = self.users["parent@school.edu"]
        alex = self.users["alex.kumar@school.edu"]
        students_data = [
            {"first_name": "Alex", "last_name": "Kumar", "grade_level": 8,
             "date_of_birth": date(2012, 4, 12), "user_id": alex.id},
            {"first_name": "Mia", "last_name": "Brown", "grade_level": 6,
             "date_of_birth": date(2014, 9, 3), "user_id": parent.id},
            {"first_name": "Leo", "last_name": "Brown", "grade_level": 9,
             "date_of_birth": date(2011, 1, 27), "user_id": parent.id},
        ]

        for student_data in students_data:
            result = await self.session.execute(
                select(Student).where(
                    Student.first_name == student_data["first_name"],
                    Student.last_name == student_data["last_name"],
                )
            )
            student = result.scalar_one_or_none()
            if not student:
                student = Student(**student_data)
                self.session.add(student)
            self.students[student_data["first_name"]] = student

        await self.session.commit()
        print(f"  {len(self.students)} students ready")

    async def seed_enrollments(self):
        """Enroll a few students, keeping seat counters in step."""
        print("📝 Seeding enrollments...")

        enrollments_data = [
            ("Alex", "Football Training", EnrollmentStatus.APPROVED, "Experienced player"),
            ("Mia", "Guitar Classes", EnrollmentStatus.ACTIVE, "New to the instrument"),
            ("Leo", "Basketball Club", EnrollmentStatus.ACTIVE, "Basketball enthusiast"),
        ]

        created = 0
        for student_name, activity_name, status, notes in enrollments_data:
            student = self.students[student_name]
            activity = self.activities[activity_name]
            if await Enrollment.get_open(self.session, student.id, activity.id):
                continue

            self.session.add(
                Enrollment(
                    student_id=student.id,
                    activity_id=activity.id,
                    status=status,
                    notes=notes,
                )
            )
            activity.current_enrollment += 1
            created += 1

        await self.session.commit()
        print(f"  Created {created} new enrollments")

    async def seed_badges(self):
        """Create the standard skill badges."""
        print("🏅 Seeding badges...")

        badges_data = [
            ("Team Player", "Shows excellent teamwork and cooperation", "sports", 10),
            ("Leadership", "Demonstrates leadership qualities", "general", 15),
            ("Perfect Attendance", "100% attendance for the term", "general", 20),
            ("Quick Learner", "Masters new skills rapidly", "general", 10),
            ("Creative Thinker", "Shows exceptional creativity", "arts", 15),
            ("Technical Expert", "Excels in technical skills", "technology", 20),
            ("Stage Performer", "Outstanding stage presence", "performing_arts", 15),
        ]

        created = 0
        for name, description, category, points in badges_data:
            if await SkillBadge.get_by_name(self.session, name):
                continue
            self.session.add(
                SkillBadge(name=name, description=description, category=category, points=points)
            )
            created += 1

        await self.session.commit()
        print(f"  Created {created} new badges")


async def main():
    """Main seeding function."""
    engine = create_async_engine(config.DATABASE_URL, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        seeder = DataSeeder(session)
        await seeder.seed_all()

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
