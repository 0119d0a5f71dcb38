"""
会籍服务
会籍状态（停用/恢复）、受益人管理、成年升级
"""
import logging
from datetime import datetime, date
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from club.errors import ClubError, ForbiddenError, NotFoundError, ValidationError
from club.models.ontology import (
    Membership, MembershipStatus, MemberProfile, ProfileRole
)
from club.models.schemas import BeneficiaryCreate, PermissionSet
from club.security.auth import get_password_hash
from club.services.notification_service import NotificationService
from club.services.permission_service import (
    ADULT_AGE, PermissionService, default_permissions, apply_permissions
)
from club.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

SUSPENSION_REASON = "Membresía suspendida"
DEACTIVATION_REASON = "Beneficiario dado de baja"


class MembershipService:
    """会籍服务"""

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService.for_session(db)
        self.permissions = PermissionService(db)
        self.reservations = ReservationService(db, notifier=self.notifier)

    def get_membership(self, membership_id: int) -> Membership:
        membership = self.db.query(Membership).filter(Membership.id == membership_id).first()
        if not membership:
            raise NotFoundError("Membresía no encontrada", membership_id=membership_id)
        return membership

    def get_profile(self, membership_id: int, profile_id: int) -> MemberProfile:
        profile = self.db.query(MemberProfile).filter(
            MemberProfile.id == profile_id,
            MemberProfile.membership_id == membership_id
        ).first()
        if not profile:
            raise NotFoundError("Beneficiario no encontrado", profile_id=profile_id)
        return profile

    def is_active(self, membership_id: int) -> bool:
        membership = self.db.query(Membership).filter(Membership.id == membership_id).first()
        return membership is not None and membership.status == MembershipStatus.ACTIVE

    # ============== 会籍状态 ==============

    def suspend_membership(self, membership_id: int, reason: str,
                           today: Optional[date] = None) -> Membership:
        """停用会籍并立即取消其未来预约"""
        membership = self.get_membership(membership_id)
        if membership.status != MembershipStatus.SUSPENDED:
            membership.status = MembershipStatus.SUSPENDED
            membership.suspended_at = datetime.utcnow()
            membership.suspension_reason = reason
            self.db.commit()
            logger.info(f"Membership {membership_id} suspended: {reason}")

        self.reservations.cancel_for_membership(membership_id, f"{SUSPENSION_REASON}: {reason}", today)
        self.db.refresh(membership)
        return membership

    def reactivate_membership(self, membership_id: int) -> Membership:
        membership = self.get_membership(membership_id)
        membership.status = MembershipStatus.ACTIVE
        membership.suspended_at = None
        membership.suspension_reason = None
        self.db.commit()
        self.db.refresh(membership)
        logger.info(f"Membership {membership_id} reactivated")
        return membership

    def sweep_suspended(self, today: Optional[date] = None) -> int:
        """对所有停用会籍重新执行取消级联，返回取消数量"""
        suspended = self.db.query(Membership).filter(
            Membership.status == MembershipStatus.SUSPENDED
        ).all()
        total = 0
        for membership in suspended:
            reason = f"{SUSPENSION_REASON}: {membership.suspension_reason or 'sin motivo'}"
            try:
                total += len(self.reservations.cancel_for_membership(membership.id, reason, today))
            except (ClubError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.error(f"Suspension cascade failed for membership {membership.id}: {e}")
        return total

    # ============== 受益人 ==============

    def _authorize_manager(self, actor: MemberProfile, membership_id: int):
        perms = self.permissions.get_permission_set(actor)
        if actor.membership_id != membership_id or not perms.can_manage_beneficiaries:
            raise ForbiddenError("authorization", "No tienes permiso para administrar beneficiarios")

    def list_beneficiaries(self, membership_id: int, actor: MemberProfile) -> List[MemberProfile]:
        if actor.membership_id != membership_id:
            raise ForbiddenError("authorization", "No perteneces a esta membresía")
        return self.db.query(MemberProfile).filter(
            MemberProfile.membership_id == membership_id,
            MemberProfile.is_active == True  # noqa: E712
        ).order_by(MemberProfile.id).all()

    def create_beneficiary(self, membership_id: int, actor: MemberProfile, data: BeneficiaryCreate,
                           today: Optional[date] = None) -> MemberProfile:
        """新增受益人，按角色与年龄分配默认权限"""
        self._authorize_manager(actor, membership_id)
        membership = self.get_membership(membership_id)
        if membership.status != MembershipStatus.ACTIVE:
            raise ForbiddenError("membership", "La membresía no está activa")

        today = today or date.today()
        if data.date_of_birth > today:
            raise ValidationError("Fecha de nacimiento inválida")

        if data.role == ProfileRole.SPOUSE:
            spouse = self.db.query(MemberProfile).filter(
                MemberProfile.membership_id == membership_id,
                MemberProfile.role == ProfileRole.SPOUSE,
                MemberProfile.is_active == True  # noqa: E712
            ).first()
            if spouse:
                raise ValidationError("La membresía ya tiene un cónyuge activo")

        profile = MemberProfile(
            membership_id=membership_id,
            first_name=data.first_name,
            last_name=data.last_name,
            date_of_birth=data.date_of_birth,
            role=data.role,
            email=data.email,
            phone=data.phone,
        )
        profile.is_minor = profile.age_on(today) < ADULT_AGE
        if data.pin:
            profile.pin_hash = get_password_hash(data.pin)
        if data.password:
            profile.password_hash = get_password_hash(data.password)

        apply_permissions(profile, default_permissions(data.role, profile.is_minor))
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"Beneficiary {profile.id} ({profile.role.value}) added to membership {membership_id}")
        return profile

    @staticmethod
    def _check_role_permissions(profile: MemberProfile, permission_set: PermissionSet):
        """hijo 不能持有支付 / 管理权限；未成年不能审批"""
        if profile.role != ProfileRole.CHILD:
            return
        if permission_set.can_make_payments or permission_set.can_manage_beneficiaries:
            raise ValidationError(
                "Solo el titular o el cónyuge pueden tener permisos de pago o administración",
                profile_id=profile.id
            )
        if profile.is_minor and permission_set.can_approve_reservations:
            raise ValidationError("Un menor no puede aprobar reservas", profile_id=profile.id)

    def update_permissions(self, membership_id: int, profile_id: int, actor: MemberProfile,
                           permission_set: PermissionSet) -> MemberProfile:
        """覆盖受益人权限集合；titular 的权限不可修改"""
        self._authorize_manager(actor, membership_id)
        profile = self.get_profile(membership_id, profile_id)
        if profile.role == ProfileRole.TITULAR:
            raise ForbiddenError("authorization", "No se pueden modificar los permisos del titular")
        self._check_role_permissions(profile, permission_set)

        apply_permissions(profile, permission_set)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def deactivate_profile(self, membership_id: int, profile_id: int, actor: MemberProfile,
                           today: Optional[date] = None) -> MemberProfile:
        """停用受益人（软删除）并取消其未来预约"""
        self._authorize_manager(actor, membership_id)
        profile = self.get_profile(membership_id, profile_id)
        if profile.role == ProfileRole.TITULAR:
            raise ValidationError("No se puede dar de baja al titular")
        if not profile.is_active:
            return profile

        profile.is_active = False
        profile.deactivated_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Profile {profile.id} deactivated")

        self.reservations.cancel_for_profile(profile.id, DEACTIVATION_REASON, today)
        self.db.refresh(profile)
        return profile

    # ============== 成年升级 ==============

    def promote_adult_profiles(self, today: Optional[date] = None) -> List[MemberProfile]:
        """年满 18 岁的未成年人：is_minor=False 并改用成年默认权限"""
        today = today or date.today()
        minors = self.db.query(MemberProfile).filter(
            MemberProfile.is_minor == True,  # noqa: E712
            MemberProfile.is_active == True  # noqa: E712
        ).all()

        promoted = []
        for profile in minors:
            if profile.age_on(today) < ADULT_AGE:
                continue
            try:
                profile.is_minor = False
                apply_permissions(profile, default_permissions(profile.role, False))
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Could not promote profile {profile.id}: {e}")
                continue
            promoted.append(profile)
            logger.info(f"Profile {profile.id} promoted to adult permissions")
            self.notifier.notify(
                profile.id,
                "¡Feliz cumpleaños!",
                "Tu perfil ahora tiene permisos de adulto.",
            )
        return promoted
