# Mensagens exibidas ao usuário final (toasts). O produto é em russo.

AUTH_ERRORS = {
    "auth/email-already-in-use": "Этот email уже используется",
    "auth/invalid-email": "Некорректный email",
    "auth/weak-password": "Слишком простой пароль",
    "auth/user-disabled": "Аккаунт заблокирован",
    "auth/user-not-found": "Пользователь не найден",
    "auth/wrong-password": "Неверный пароль",
}

REGISTER_FAILED = "Ошибка при регистрации"
LOGIN_FAILED = "Ошибка при входе"
LOGOUT_FAILED = "Ошибка при выходе из системы"
PROFILE_NOT_FOUND = "Данные пользователя не найдены"

TRANSFER_AMOUNT_INVALID = "Сумма перевода должна быть больше нуля"
TRANSFER_DESCRIPTION_REQUIRED = "Необходимо указать комментарий к переводу"
TRANSFER_SAME_CATEGORY = "Нельзя перевести средства в ту же категорию"
TRANSFER_OK = "Перевод успешно выполнен"
TRANSFER_FAILED = "Не удалось выполнить перевод средств"

FILE_TOO_LARGE = "Файл {name} слишком большой (макс. 10MB)"
FILE_UPLOADED = "Файл {name} успешно загружен"
FILE_UPLOAD_FAILED = "Ошибка при загрузке файла {name}"

TRANSACTION_DELETED = "Операция успешно удалена"
TRANSACTION_DELETE_FAILED = "Ошибка при удалении операции"
REAUTH_REQUIRED = "Требуется подтверждение паролем"

USER_CREATED = "Пользователь успешно добавлен"
USER_CREATE_FAILED = "Ошибка при добавлении пользователя"
USER_DELETED = "Пользователь успешно удален"
USER_DELETE_FAILED = "Ошибка при удалении пользователя"
ROLE_UPDATED = "Роль пользователя успешно обновлена"
ROLE_UPDATE_FAILED = "Ошибка при обновлении роли"


def auth_message(code: str | None, default: str) -> str:
    return AUTH_ERRORS.get(code or "", default)
