from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import AuthenticationError, ConflictError, NotFoundError
from ..core.logging import setup_logger
from ..db.database import utcnow
from ..models.user import User
from ..schemas.user import ProfileUpdate, SignupRequest
from ..utils.crypto import hash_password, verify_password

logger = setup_logger("users")

STAT_FIELDS = {
    "totalEarnings": User.total_earnings,
    "activeProjects": User.active_projects,
    "totalOrders": User.total_orders,
}

async def get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user

async def signup(session: AsyncSession, data: SignupRequest) -> User:
    email = data.email.strip().lower()
    existing = await session.scalar(select(User).where(User.email == email))
    if existing:
        raise ConflictError("User already exists")

    user = User(
        email=email,
        name=data.name.strip(),
        password=hash_password(data.password),
        role=data.role.value,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("User already exists")
    logger.info(f"Registered {user.role} {user.email}")
    return user

async def login(session: AsyncSession, email: str, password: str) -> User:
    user = await session.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None or not verify_password(user.password, password):
        raise AuthenticationError("Invalid Credentials")
    user.last_login = utcnow()
    await session.commit()
    return user

async def update_profile(session: AsyncSession, user_id: int, data: ProfileUpdate) -> User:
    user = await get_user(session, user_id)
    personal = data.personal
    professional = data.professional

    if personal.name:
        user.name = personal.name
    user.role = data.user_type.value
    user.bio = personal.bio or ""
    user.country = personal.country or ""
    user.picture_url = personal.picture_url or ""
    user.languages = personal.languages if personal.languages is not None else ["English"]

    if data.user_type.value == "freelancer":
        user.skills = (professional and professional.skills) or []
        user.education = (professional and professional.education) or []
        user.certifications = (professional and professional.certifications) or []
    else:
        user.company_name = (professional and professional.company_name) or ""
        user.company_info = (professional and professional.company_info) or ""
        user.company_link = (professional and professional.company_link) or ""
        user.past_projects = (professional and professional.past_projects) or []

    await session.commit()
    return user

async def top_freelancers(session: AsyncSession, limit: int = 10):
    result = await session.execute(
        select(User)
        .where(User.role == "freelancer")
        .order_by(User.total_orders.desc(), User.id)
        .limit(limit)
    )
    return result.scalars().all()

async def increment_stat(session: AsyncSession, user_id: int, stat: str, amount: float = 1) -> bool:
    """Bump a freelancer counter in the caller's transaction; no-op for clients."""
    column = STAT_FIELDS.get(stat)
    if column is None:
        return False
    result = await session.execute(
        update(User)
        .where(User.id == user_id, User.role == "freelancer")
        .values({column: column + amount})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
