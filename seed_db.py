import asyncio
from datetime import timedelta

from artisans.database import Base, async_session, engine, utcnow
from artisans.models.bid import BidStatus, ServiceRequestBid
from artisans.models.material import Material
from artisans.models.message import Message
from artisans.models.project import Project, ProjectStatus
from artisans.models.project_member import MemberRole, ProjectMember
from artisans.models.service_request import ServiceRequest, ServiceRequestStatus
from artisans.models.team_invitation import TeamInvitation
from artisans.models.timeline_entry import ProjectTimelineEntry, TimelineStatus
from artisans.models.user import User, UserRole
from artisans.routers.auth import hash_password
from artisans.services.invitations import new_invite_token


async def async_main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        pw = hash_password("password123")
        admin = User(username="admin", email="admin@example.com", full_name="Ada Admin", role=UserRole.ADMIN, password_hash=pw)
        client = User(username="carol", email="carol@example.com", full_name="Carol Client", role=UserRole.CLIENT, password_hash=pw)
        builder = User(username="bob", email="bob@example.com", full_name="Bob Builder", role=UserRole.SERVICE_PROVIDER,
                       service_type="masonry", business_name="Bob's Bricks", password_hash=pw)
        plumber = User(username="pat", email="pat@example.com", full_name="Pat Plumber", role=UserRole.SERVICE_PROVIDER,
                       service_type="plumbing", password_hash=pw)
        supplier = User(username="sam", email="sam@example.com", full_name="Sam Supplies", role=UserRole.SUPPLIER,
                        business_name="Sam's Hardware", password_hash=pw)
        session.add_all([admin, client, builder, plumber, supplier])
        await session.flush()

        project = Project(name="Lakeside House", description="Two-storey family home.", client_id=client.id,
                          status=ProjectStatus.IN_PROGRESS, location="Nairobi", budget=12_000_000_00)
        session.add(project)
        await session.flush()

        session.add(ProjectMember(project_id=project.id, user_id=builder.id, role=MemberRole.CONTRACTOR))

        now = utcnow()
        session.add_all([
            ProjectTimelineEntry(project_id=project.id, created_by=client.id, title="Site cleared",
                                 status=TimelineStatus.COMPLETED, date=now - timedelta(days=20), completion_percentage=10),
            ProjectTimelineEntry(project_id=project.id, created_by=builder.id, title="Foundation poured",
                                 status=TimelineStatus.COMPLETED, date=now - timedelta(days=5), completion_percentage=25,
                                 construction_phase="foundation", weather="sunny"),
        ])
        project.progress = 25

        invite = TeamInvitation(project_id=project.id, invited_by=client.id, invite_token=new_invite_token(),
                                invite_email="ivy@example.com", role=MemberRole.INSPECTOR,
                                expires_at=now + timedelta(days=7))
        session.add(invite)

        request = ServiceRequest(client_id=client.id, request_type="service", service_type="plumbing",
                                 description="Install bathroom fixtures.", location="Nairobi",
                                 budget=300_000_00, status=ServiceRequestStatus.BIDDING)
        session.add(request)
        await session.flush()

        session.add(ServiceRequestBid(service_request_id=request.id, service_provider_id=plumber.id,
                                      bid_amount=280_000_00, timeframe=14, description="Fixtures and fitting.",
                                      points_used=50, status=BidStatus.PENDING))
        plumber.points -= 50

        session.add_all([
            Material(supplier_id=supplier.id, name="Cement 50kg", description="Portland cement.", category="structure",
                     unit="bag", price=850_00, brand="Bamburi"),
            Material(supplier_id=supplier.id, name="River sand", description="Washed building sand.",
                     category="structure", unit="tonne", price=3_200_00),
        ])
        session.add(Message(sender_id=builder.id, receiver_id=client.id, project_id=project.id,
                            content="Foundation is curing; framing starts Monday."))

        await session.commit()
        print(f"Seeded project {project.id}, service request {request.id}.")
        print(f"Invitation link token: {invite.invite_token}")


if __name__ == "__main__":
    asyncio.run(async_main())
