# main.py
import sys
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config import CORS_ORIGINS, PORT
from database import init_db
from errors import register_exception_handlers
from routes import auth, tests, resources, users

app = FastAPI(title="Exam Prep API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(tests.router)
app.include_router(resources.router)
app.include_router(users.router)


@app.get("/api/health")
async def health():
    return {"status": "success", "data": {"service": "exam-prep-api"}}


@app.on_event("startup")
async def startup_event():
    await init_db()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=PORT, reload=True)
