"""
密码哈希
"""
import bcrypt


def _truncate(password: str) -> bytes:
    # bcrypt限制密码长度不能超过72字节，需要截断
    return password.encode('utf-8')[:72]


def get_password_hash(password: str) -> str:
    """生成密码哈希"""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(_truncate(password), salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    return bcrypt.checkpw(_truncate(plain_password), hashed_password.encode('utf-8'))
