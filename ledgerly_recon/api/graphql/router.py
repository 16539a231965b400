from fastapi import Depends
from sqlalchemy.orm import Session
from strawberry.fastapi import GraphQLRouter

from ledgerly_recon.api.graphql.schema import schema
from ledgerly_recon.core.database import get_db


def get_context(db: Session = Depends(get_db)):
    return {"db": db}


graphql_router = GraphQLRouter(schema, context_getter=get_context)
