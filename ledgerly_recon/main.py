from fastapi import FastAPI
from ledgerly_recon.core.database import engine, Base
from ledgerly_recon.core.logging import configure_logging
from ledgerly_recon.api.rest import api_router
from ledgerly_recon.api.graphql.router import graphql_router

configure_logging()

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Ledgerly Bank Reconciliation API",
    description="Bank statement import, document matching and batch allocation with REST and GraphQL",
    version="1.0.0",
)

app.include_router(api_router, prefix="/api")
app.include_router(graphql_router, prefix="/graphql")


@app.get("/")
def root():
    return {"message": "Ledgerly Bank Reconciliation API", "version": "1.0.0"}


@app.get("/health")
def health():
    return {"status": "healthy"}
