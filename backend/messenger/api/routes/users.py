# backend/messenger/api/routes/users.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from messenger.db.session import get_db
from messenger.crud import users as users_crud
from messenger.schemas.user import UserOut

router = APIRouter(prefix='/api/users', tags=['users'])


@router.get('/{user_id}', response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db)):
    u = users_crud.get_by_id(db, user_id)
    if not u:
        raise HTTPException(status_code=404, detail='User not found')
    return u
