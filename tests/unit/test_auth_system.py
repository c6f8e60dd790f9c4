"""
认证系统单元测试
"""

import pytest
from datetime import datetime, timedelta, timezone

import jwt
from bson import ObjectId

from lms.auth import (
    PasswordManager, JWTAuthenticator, UserManager, RoleAuthorizer, SessionAuthenticator,
    User, UserRole, Identity, RegistrationData, ConfigurationError,
    ValidationError, InvalidRoleError, InvalidCredentialsError, MissingCredentialsError,
    InvalidTokenError, TokenExpiredError, TokenSignatureError, MalformedTokenError,
    AuthorizationError, AuthorizationContractError, UserNotFoundError,
    DuplicateEmailError, DuplicateUsernameError, ACCESS_TOKEN_TYPE, RESET_TOKEN_TYPE
)


def make_registration(**overrides) -> RegistrationData:
    data = {
        'email': "student@example.com",
        'password': "Secret123!",
        'first_name': "Ada",
        'last_name': "Lovelace",
        'role': "student"
    }
    data.update(overrides)
    return RegistrationData(**data)


class TestPasswordManager:
    """密码管理器测试"""

    def setup_method(self):
        """设置测试方法"""
        self.password_manager = PasswordManager(rounds=4)

    def test_hash_password(self):
        """测试密码哈希"""
        password = "TestPassword123!"
        hashed = self.password_manager.hash_password(password)

        assert hashed != password
        assert hashed.startswith("$2")
        assert len(hashed) == 60  # bcrypt hash长度

    def test_hash_is_salted(self):
        """相同密码两次哈希结果不同"""
        password = "TestPassword123!"
        assert self.password_manager.hash_password(password) != self.password_manager.hash_password(password)

    def test_verify_password(self):
        """测试密码验证"""
        password = "TestPassword123!"
        hashed = self.password_manager.hash_password(password)

        # 正确密码验证
        assert self.password_manager.verify_password(password, hashed)

        # 错误密码验证
        assert not self.password_manager.verify_password("WrongPassword", hashed)

    def test_verify_against_invalid_hash(self):
        """无效哈希返回False而不是抛出异常"""
        assert not self.password_manager.verify_password("password", "not-a-bcrypt-hash")
        assert not self.password_manager.verify_password("password", "")

    def test_empty_password_rejected(self):
        with pytest.raises(ValueError):
            self.password_manager.hash_password("")

    def test_password_length_limit(self):
        """bcrypt只接受72字节以内的密码，超出按请求错误处理"""
        hashed = self.password_manager.hash_password("p" * 72)
        assert self.password_manager.verify_password("p" * 72, hashed)

        with pytest.raises(ValidationError) as exc_info:
            self.password_manager.hash_password("p" * 73)
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Password must be at most 72 bytes"

    def test_password_limit_counts_bytes(self):
        """按UTF-8字节计算，不按字符数"""
        with pytest.raises(ValidationError):
            self.password_manager.hash_password("é" * 37)  # 37个字符，74字节


class TestJWTAuthenticator:
    """JWT认证器测试"""

    def setup_method(self):
        """设置测试方法"""
        self.jwt_auth = JWTAuthenticator(secret_key="test_secret_key")
        self.test_user = User(
            id=str(ObjectId()),
            email="test@example.com",
            first_name="Test",
            last_name="User",
            role=UserRole.INSTRUCTOR,
            password_hash="hashed_password"
        )

    def test_missing_secret(self):
        """没有签名密钥时拒绝创建"""
        with pytest.raises(ConfigurationError):
            JWTAuthenticator(secret_key="")

    def test_access_token_claims(self):
        """访问令牌携带用户ID和角色"""
        token = self.jwt_auth.create_access_token(self.test_user)
        payload = self.jwt_auth.verify_token(token)

        assert payload['sub'] == self.test_user.id
        assert payload['role'] == "instructor"
        assert payload['type'] == ACCESS_TOKEN_TYPE
        assert payload['exp'] - payload['iat'] == 24 * 3600

    def test_decode_identity(self):
        token = self.jwt_auth.create_access_token(self.test_user)
        identity = self.jwt_auth.decode_identity(token)

        assert identity == Identity(user_id=self.test_user.id, role=UserRole.INSTRUCTOR)

    def test_reset_token_claims(self):
        token = self.jwt_auth.create_reset_token(self.test_user)
        payload = self.jwt_auth.verify_token(token, expected_type=RESET_TOKEN_TYPE)

        assert payload['sub'] == self.test_user.id
        assert 'role' not in payload
        assert payload['exp'] - payload['iat'] == 3600

    def test_expired_token(self):
        """有效期1小时的令牌在1小时1秒后验证失败"""
        issued_at = datetime.now(timezone.utc) - timedelta(hours=1, seconds=1)
        token = self.jwt_auth.issue_token(
            {'sub': self.test_user.id, 'type': RESET_TOKEN_TYPE},
            timedelta(hours=1),
            issued_at=issued_at
        )

        with pytest.raises(TokenExpiredError) as exc_info:
            self.jwt_auth.verify_token(token)
        assert isinstance(exc_info.value, InvalidTokenError)

    def test_token_not_yet_expired(self):
        issued_at = datetime.now(timezone.utc) - timedelta(minutes=59)
        token = self.jwt_auth.issue_token(
            {'sub': self.test_user.id, 'type': RESET_TOKEN_TYPE},
            timedelta(hours=1),
            issued_at=issued_at
        )

        assert self.jwt_auth.verify_token(token)['sub'] == self.test_user.id

    def test_wrong_secret(self):
        """其他密钥签名的令牌被拒绝"""
        other = JWTAuthenticator(secret_key="another_secret")
        token = other.create_reset_token(self.test_user)

        with pytest.raises(TokenSignatureError):
            self.jwt_auth.verify_token(token, expected_type=RESET_TOKEN_TYPE)

    def test_wrong_issuer(self):
        other = JWTAuthenticator(secret_key="test_secret_key", issuer="someone-else")
        token = other.create_access_token(self.test_user)

        with pytest.raises(MalformedTokenError):
            self.jwt_auth.verify_token(token)

    def test_garbage_token(self):
        with pytest.raises(MalformedTokenError):
            self.jwt_auth.verify_token("not.a.token")

        with pytest.raises(MalformedTokenError):
            self.jwt_auth.verify_token("")

    def test_missing_subject(self):
        token = jwt.encode(
            {
                'role': 'admin',
                'type': ACCESS_TOKEN_TYPE,
                'iss': 'lms-backend',
                'iat': datetime.now(timezone.utc),
                'exp': datetime.now(timezone.utc) + timedelta(hours=1)
            },
            "test_secret_key",
            algorithm="HS256"
        )

        with pytest.raises(MalformedTokenError):
            self.jwt_auth.verify_token(token)

    def test_token_type_mismatch(self):
        """访问令牌不能用于重置密码，反之亦然"""
        access_token = self.jwt_auth.create_access_token(self.test_user)
        reset_token = self.jwt_auth.create_reset_token(self.test_user)

        with pytest.raises(MalformedTokenError):
            self.jwt_auth.verify_token(access_token, expected_type=RESET_TOKEN_TYPE)

        with pytest.raises(MalformedTokenError):
            self.jwt_auth.decode_identity(reset_token)

    def test_unknown_role_in_token(self):
        token = self.jwt_auth.issue_token(
            {'sub': self.test_user.id, 'role': 'superuser', 'type': ACCESS_TOKEN_TYPE},
            timedelta(hours=1)
        )

        with pytest.raises(MalformedTokenError):
            self.jwt_auth.decode_identity(token)

    def test_extract_bearer_token(self):
        assert JWTAuthenticator.extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
        assert JWTAuthenticator.extract_bearer_token("bearer abc") == "abc"

        with pytest.raises(MissingCredentialsError):
            JWTAuthenticator.extract_bearer_token(None)

        with pytest.raises(MalformedTokenError):
            JWTAuthenticator.extract_bearer_token("Basic dXNlcjpwYXNz")

        with pytest.raises(MalformedTokenError):
            JWTAuthenticator.extract_bearer_token("Bearer")


class TestSessionAuthenticator:
    """会话认证器测试"""

    def setup_method(self):
        self.jwt_auth = JWTAuthenticator(secret_key="test_secret_key")
        self.authenticator = SessionAuthenticator(self.jwt_auth)

    def test_authenticate(self):
        user = User(id=str(ObjectId()), email="a@example.com", role=UserRole.ADMIN)
        token = self.jwt_auth.create_access_token(user)

        identity = self.authenticator.authenticate(f"Bearer {token}")
        assert identity.user_id == user.id
        assert identity.role is UserRole.ADMIN

    def test_missing_header(self):
        with pytest.raises(MissingCredentialsError):
            self.authenticator.authenticate(None)

    def test_invalid_token(self):
        with pytest.raises(InvalidTokenError):
            self.authenticator.authenticate("Bearer invalid")


class TestUserModel:
    """用户模型测试"""

    def test_role_parse(self):
        assert UserRole.parse("portfolio") is UserRole.PORTFOLIO
        assert UserRole.parse(UserRole.ADMIN) is UserRole.ADMIN

        for value in ("Admin", "professor", "", None, 1):
            with pytest.raises(ValueError):
                UserRole.parse(value)

    def test_public_dict_hides_password(self):
        user = User(
            id="abc",
            email="a@example.com",
            first_name="A",
            last_name="B",
            password_hash="secret-hash",
            phone_number="555"
        )

        public = user.to_public_dict()
        assert public == {
            'id': "abc",
            'email': "a@example.com",
            'username': None,
            'firstName': "A",
            'lastName': "B",
            'role': "student",
            'phoneNumber': "555"
        }
        assert 'password_hash' not in user.to_dict()
        assert user.to_dict(include_sensitive=True)['password_hash'] == "secret-hash"

    def test_username_omitted_when_empty(self):
        user = User(email="a@example.com")
        assert 'username' not in user.to_dict()

    def test_round_trip_from_document(self):
        object_id = ObjectId()
        user = User.from_dict({
            '_id': object_id,
            'email': "a@example.com",
            'first_name': "A",
            'last_name': "B",
            'role': "instructor",
            'password_hash': "hash",
            'courses': [ObjectId()]
        })

        assert user.id == str(object_id)
        assert user.role is UserRole.INSTRUCTOR
        assert not user.password_modified
        assert len(user.courses) == 1

    def test_set_password_marks_modified(self):
        user = User(email="a@example.com", password_hash="old")
        user.set_password("new-password")

        assert user.password_modified
        assert user.password_hash == "old"

        user.apply_password_hash("new-hash")
        assert not user.password_modified
        assert user.password_hash == "new-hash"


class TestRoleAuthorizer:
    """角色授权测试"""

    def setup_method(self):
        self.authorizer = RoleAuthorizer()

    def test_allowed_role(self):
        identity = Identity(user_id="u1", role=UserRole.INSTRUCTOR)
        self.authorizer.authorize(identity, [UserRole.INSTRUCTOR])
        self.authorizer.authorize(identity, ["student", "instructor"])

    def test_denied_role(self):
        identity = Identity(user_id="u1", role=UserRole.STUDENT)
        with pytest.raises(AuthorizationError):
            self.authorizer.authorize(identity, [UserRole.INSTRUCTOR])

    def test_no_role_hierarchy(self):
        """admin不会自动获得instructor权限"""
        identity = Identity(user_id="u1", role=UserRole.ADMIN)
        with pytest.raises(AuthorizationError):
            self.authorizer.authorize(identity, [UserRole.INSTRUCTOR])

    def test_empty_allowed_set(self):
        identity = Identity(user_id="u1", role=UserRole.ADMIN)
        with pytest.raises(AuthorizationError):
            self.authorizer.authorize(identity, [])

    def test_missing_identity(self):
        """未认证就授权属于编程错误"""
        with pytest.raises(AuthorizationContractError):
            self.authorizer.authorize(None, [UserRole.ADMIN])


class TestUserManager:
    """用户管理器测试"""

    @pytest.mark.asyncio
    async def test_register_user(self, user_manager, fake_db):
        """测试用户注册"""
        user = await user_manager.register_user(make_registration(username="ada", phone_number="123"))

        assert user.id
        assert user.role is UserRole.STUDENT
        assert user.username == "ada"

        stored = await fake_db.users.find_one({'email': "student@example.com"})
        assert stored['_id'] == ObjectId(user.id)
        assert stored['password_hash'] != "Secret123!"
        assert user_manager.password_manager.verify_password("Secret123!", stored['password_hash'])
        assert fake_db.portfolios.documents == []

    @pytest.mark.asyncio
    async def test_register_missing_fields(self, user_manager, fake_db):
        with pytest.raises(ValidationError) as exc_info:
            await user_manager.register_user(make_registration(first_name=None, password=""))

        assert "password" in exc_info.value.message
        assert "firstName" in exc_info.value.message
        assert fake_db.users.documents == []

    @pytest.mark.asyncio
    async def test_register_invalid_role(self, user_manager, fake_db):
        """无效角色不会写入任何数据"""
        with pytest.raises(InvalidRoleError):
            await user_manager.register_user(make_registration(role="superuser"))

        assert fake_db.users.documents == []

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, user_manager):
        await user_manager.register_user(make_registration())

        with pytest.raises(DuplicateEmailError):
            await user_manager.register_user(make_registration(first_name="Other"))

    @pytest.mark.asyncio
    async def test_duplicate_email_enforced_by_index(self, user_manager, fake_db):
        """查重被绕过时（并发注册），唯一索引仍然保证邮箱唯一"""
        await user_manager.register_user(make_registration())

        original_find_one = fake_db.users.find_one

        async def find_nothing(query):
            return None

        fake_db.users.find_one = find_nothing
        try:
            with pytest.raises(DuplicateEmailError):
                await user_manager.register_user(make_registration())
        finally:
            fake_db.users.find_one = original_find_one

        assert len(fake_db.users.documents) == 1

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, user_manager):
        await user_manager.register_user(make_registration(username="ada"))

        with pytest.raises(DuplicateUsernameError):
            await user_manager.register_user(make_registration(email="other@example.com", username="ada"))

    @pytest.mark.asyncio
    async def test_users_without_username(self, user_manager, fake_db):
        """username是稀疏索引，多个用户可以都没有用户名"""
        await user_manager.register_user(make_registration())
        await user_manager.register_user(make_registration(email="second@example.com"))

        assert len(fake_db.users.documents) == 2

    @pytest.mark.asyncio
    async def test_register_with_portfolio(self, user_manager, fake_db):
        user = await user_manager.register_user(make_registration(
            role="portfolio",
            portfolio_url="https://ada.dev",
            bio="Analyst",
            skills=["math"]
        ))

        portfolio = fake_db.portfolios.documents[0]
        assert portfolio['user'] == ObjectId(user.id)
        assert portfolio['skills'] == ["math"]
        assert portfolio['published'] is False

    @pytest.mark.asyncio
    async def test_authenticate_user(self, user_manager):
        """测试用户认证"""
        registered = await user_manager.register_user(make_registration())

        user = await user_manager.authenticate_user("student@example.com", "Secret123!")
        assert user.id == registered.id

    @pytest.mark.asyncio
    async def test_authentication_errors_are_uniform(self, user_manager):
        """邮箱不存在和密码错误返回相同的错误"""
        await user_manager.register_user(make_registration())

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await user_manager.authenticate_user("student@example.com", "WrongPassword")

        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await user_manager.authenticate_user("nobody@example.com", "Secret123!")

        assert wrong_password.value.message == unknown_email.value.message
        assert wrong_password.value.error_code == unknown_email.value.error_code

    @pytest.mark.asyncio
    async def test_authenticate_missing_fields(self, user_manager):
        with pytest.raises(ValidationError):
            await user_manager.authenticate_user("student@example.com", "")

    @pytest.mark.asyncio
    async def test_update_phone_keeps_password_hash(self, user_manager, fake_db):
        """只修改手机号时不重新哈希密码"""
        user = await user_manager.register_user(make_registration())
        before = (await fake_db.users.find_one({'email': "student@example.com"}))['password_hash']

        updated = await user_manager.update_profile(user.id, {'phone_number': "555-0100"})
        after = (await fake_db.users.find_one({'email': "student@example.com"}))['password_hash']

        assert updated.phone_number == "555-0100"
        assert after == before

    @pytest.mark.asyncio
    async def test_update_password_rehashes(self, user_manager):
        user = await user_manager.register_user(make_registration())

        await user_manager.update_profile(user.id, {'password': "NewSecret456!"})

        with pytest.raises(InvalidCredentialsError):
            await user_manager.authenticate_user("student@example.com", "Secret123!")
        assert await user_manager.authenticate_user("student@example.com", "NewSecret456!")

    @pytest.mark.asyncio
    async def test_update_username_taken(self, user_manager):
        await user_manager.register_user(make_registration(username="ada"))
        other = await user_manager.register_user(make_registration(email="other@example.com"))

        with pytest.raises(DuplicateUsernameError):
            await user_manager.update_profile(other.id, {'username': "ada"})

    @pytest.mark.asyncio
    async def test_register_password_too_long(self, user_manager, fake_db):
        with pytest.raises(ValidationError):
            await user_manager.register_user(make_registration(password="p" * 73))

        assert fake_db.users.documents == []

    @pytest.mark.asyncio
    async def test_update_password_too_long(self, user_manager, fake_db):
        user = await user_manager.register_user(make_registration())
        before = fake_db.users.documents[0]['password_hash']

        with pytest.raises(ValidationError):
            await user_manager.update_profile(user.id, {'password': "p" * 73})

        assert fake_db.users.documents[0]['password_hash'] == before

    @pytest.mark.asyncio
    async def test_update_with_only_empty_values(self, user_manager):
        """空字符串视为未提供，不会执行空保存"""
        user = await user_manager.register_user(make_registration())

        with pytest.raises(ValidationError) as exc_info:
            await user_manager.update_profile(user.id, {'password': "", 'first_name': ""})
        assert exc_info.value.message == "No updatable fields provided"

    @pytest.mark.asyncio
    async def test_get_user_by_username(self, user_manager):
        registered = await user_manager.register_user(make_registration(username="ada"))

        user = await user_manager.get_user_by_username("ada")
        assert user.id == registered.id
        assert await user_manager.get_user_by_username("nobody") is None

    @pytest.mark.asyncio
    async def test_update_profile_errors(self, user_manager):
        user = await user_manager.register_user(make_registration())

        with pytest.raises(ValidationError):
            await user_manager.update_profile(user.id, {'role': "admin"})

        with pytest.raises(UserNotFoundError):
            await user_manager.update_profile(str(ObjectId()), {'first_name': "X"})

    @pytest.mark.asyncio
    async def test_get_user_by_invalid_id(self, user_manager):
        assert await user_manager.get_user_by_id("not-an-object-id") is None
        assert await user_manager.get_user_by_id(str(ObjectId())) is None

    @pytest.mark.asyncio
    async def test_list_users(self, user_manager):
        await user_manager.register_user(make_registration())
        await user_manager.register_user(make_registration(email="admin@example.com", role="admin"))

        users = await user_manager.list_users()
        assert len(users) == 2

        admins = await user_manager.list_users(role=UserRole.ADMIN)
        assert [user.email for user in admins] == ["admin@example.com"]

        assert len(await user_manager.list_users(skip=1, limit=10)) == 1

    @pytest.mark.asyncio
    async def test_save_user_requires_password(self, fake_db, password_manager):
        manager = UserManager(fake_db, password_manager)

        with pytest.raises(ValueError):
            await manager.save_user(User(email="nopass@example.com"))
