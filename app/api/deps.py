from fastapi import Depends
from sqlalchemy.orm import Session
from app.infra.db import get_db

# une session par requête: commit en sortie, rollback sur exception
DBSession = Depends(get_db)
