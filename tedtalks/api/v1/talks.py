"""Talk catalog endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query, Response, status

from tedtalks.talks.models import Talk, TalkPage, TalkRequest

router = APIRouter(prefix="/talks")

# Set by main.py during lifespan (same pattern as imports.py)
_repository = None
_default_size = 20
_max_size = 100


def set_talk_repository(repository, default_size: int = 20, max_size: int = 100):
    global _repository, _default_size, _max_size
    _repository = repository
    _default_size = default_size
    _max_size = max_size


def _require_repository():
    if _repository is None:
        raise HTTPException(status_code=503, detail="Talk catalog not initialized")
    return _repository


@router.get("", response_model=TalkPage)
async def list_talks(
    author: Optional[str] = Query(None, max_length=200),
    year: Optional[int] = Query(None, ge=1, le=9999),
    keyword: Optional[str] = Query(None, max_length=200),
    page: int = Query(0, ge=0),
    size: Optional[int] = Query(None, ge=1),
):
    """Page through talks, filtered by author prefix, year or keyword."""
    repository = _require_repository()
    size = min(size or _default_size, _max_size)
    return repository.search(author=author, year=year, keyword=keyword, page=page, size=size)


@router.post("", response_model=Talk, status_code=status.HTTP_201_CREATED)
async def create_talk(talk: TalkRequest):
    return _require_repository().create(talk)


@router.get("/{talk_id}", response_model=Talk)
async def get_talk(talk_id: int = Path(ge=1)):
    return _require_repository().get(talk_id)


@router.put("/{talk_id}", response_model=Talk)
async def update_talk(talk: TalkRequest, talk_id: int = Path(ge=1)):
    """Replace every field of an existing talk."""
    return _require_repository().update(talk_id, talk)


@router.delete("/{talk_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_talk(talk_id: int = Path(ge=1)):
    _require_repository().delete(talk_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
