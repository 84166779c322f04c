"""Create database schema and seed the doctor directory for development."""
from __future__ import annotations

import asyncio

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_agent.db.session import SessionLocal, create_schema
from clinic_agent.models.doctor import Doctor, DoctorSlot

DOCTORS = [
	{
		"id": "doc-aisha-khan",
		"name": "Dr. Aisha Khan",
		"specialization": "Pediatrician",
		"slots": [
			("Monday", "09:00", "17:00"),
			("Wednesday", "09:00", "17:00"),
			("Friday", "09:00", "15:00"),
		],
	},
	{
		"id": "doc-bilal-ahmed",
		"name": "Dr. Bilal Ahmed",
		"specialization": "Cardiologist",
		"slots": [
			("Tuesday", "10:00", "18:00"),
			("Thursday", "10:00", "18:00"),
			("Saturday", "09:00", "13:00"),
		],
	},
]


async def seed_doctors(session_factory: async_sessionmaker[AsyncSession] = SessionLocal) -> None:
	"""Insert or update demo doctors and replace their weekly hours."""

	async with session_factory() as session:
		async with session.begin():
			for doctor_data in DOCTORS:
				doctor = await session.get(Doctor, doctor_data["id"])
				if doctor is None:
					doctor = Doctor(
						id=doctor_data["id"],
						name=doctor_data["name"],
						specialization=doctor_data["specialization"],
						is_active=True,
					)
					session.add(doctor)
				else:
					doctor.name = doctor_data["name"]
					doctor.specialization = doctor_data["specialization"]
					doctor.is_active = True

				await session.flush()
				await session.execute(delete(DoctorSlot).where(DoctorSlot.doctor_id == doctor_data["id"]))

				for day, start_time, end_time in doctor_data["slots"]:
					session.add(
						DoctorSlot(
							doctor_id=doctor_data["id"],
							day=day,
							start_time=start_time,
							end_time=end_time,
						)
					)


async def main() -> None:
	await create_schema()
	await seed_doctors()
	print("Database schema ensured and doctor directory seeded.")


if __name__ == "__main__":
	asyncio.run(main())
