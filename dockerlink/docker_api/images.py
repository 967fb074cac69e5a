"""
Docker Images API
"""

import base64
import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import ImageNotFound, InvalidArgument, NotFound, PullError
from .streams import PullProgress, StreamHandler, StreamTask, iter_json_stream

logger = logging.getLogger(__name__)

DEFAULT_TAG = 'latest'


class ImageReference:
    """
    Parsed image reference: repository plus tag or digest
    
    'nginx' -> nginx:latest, 'localhost:5000/app' -> localhost:5000/app:latest,
    'alpine@sha256:...' keeps the digest and has no tag.
    """
    
    def __init__(self, repository: str, tag: Optional[str] = None, digest: Optional[str] = None):
        if not repository:
            raise InvalidArgument("Image repository must not be empty")
        if tag and digest:
            raise InvalidArgument("Image reference takes a tag or a digest, not both")
        self.repository = repository
        self.digest = digest
        self.tag = None if digest else (tag or DEFAULT_TAG)
    
    @classmethod
    def parse(cls, reference: str, tag: Optional[str] = None) -> 'ImageReference':
        """
        Parse 'repository[:tag]' or 'repository@digest'
        
        Args:
            reference: Image reference
            tag: Explicit tag, overrides one embedded in the reference
        """
        reference = (reference or '').strip()
        if not reference:
            raise InvalidArgument("Image reference must not be empty")
        
        repository, sep, digest = reference.partition('@')
        if sep:
            if not digest:
                raise InvalidArgument(f"Missing digest in {reference!r}")
            if tag:
                raise InvalidArgument(f"Cannot apply tag {tag!r} to digest reference {reference!r}")
            return cls(repository, digest=digest)
        
        # A colon after the last slash separates the tag; earlier ones belong to a registry port
        slash = reference.rfind('/')
        colon = reference.rfind(':')
        embedded_tag = None
        if colon > slash:
            repository, embedded_tag = reference[:colon], reference[colon + 1:]
            if not embedded_tag:
                raise InvalidArgument(f"Missing tag in {reference!r}")
        return cls(repository, tag=tag or embedded_tag)
    
    def __str__(self):
        if self.digest:
            return f"{self.repository}@{self.digest}"
        return f"{self.repository}:{self.tag}"
    
    def __repr__(self):
        return f"<ImageReference: {self}>"
    
    def __eq__(self, other):
        if not isinstance(other, ImageReference):
            return NotImplemented
        return str(self) == str(other)
    
    def __hash__(self):
        return hash(str(self))


class Image:
    """Docker Image object"""
    
    def __init__(self, attrs: Dict[str, Any], client):
        self.attrs = attrs
        self.client = client
        self.id = attrs.get('Id', '')
        self.short_id = self.id.split(':', 1)[-1][:12] if self.id else ''
        self.tags = attrs.get('RepoTags') or []
        self.digests = attrs.get('RepoDigests') or []
    
    def __repr__(self):
        return f"<Image: {self.tags[0] if self.tags else self.short_id}>"
    
    @property
    def size(self) -> int:
        return self.attrs.get('Size', 0)
    
    @property
    def created(self):
        return self.attrs.get('Created')
    
    @property
    def labels(self) -> Dict[str, str]:
        config = self.attrs.get('Config') or {}
        return config.get('Labels') or self.attrs.get('Labels') or {}
    
    def reload(self) -> 'Image':
        """Reload image data"""
        self.attrs = self.client.inspect(self.id)
        return self
    
    def remove(self, force: bool = False, noprune: bool = False):
        """Remove this image"""
        return self.client.remove(self.id, force=force, noprune=noprune)


def iter_pull_progress(response) -> Iterator[PullProgress]:
    """Decode /images/create output, failing on the first error message"""
    for data in iter_json_stream(response):
        if 'error' in data:
            detail = data.get('errorDetail') or {}
            message = detail.get('message') or data['error']
            raise PullError(f"Pull failed: {message}", explanation=message)
        yield PullProgress.from_api(data)


def encode_auth_config(auth_config: Dict[str, Any]) -> str:
    """Encode registry credentials for the X-Registry-Auth header"""
    payload = json.dumps(auth_config).encode('utf-8')
    return base64.urlsafe_b64encode(payload).decode('ascii')


class ImageCollection:
    """Docker Images collection"""
    
    def __init__(self, client):
        self.client = client
    
    def list(self, name: Optional[str] = None, all: bool = False,
             filters: Optional[Dict[str, Any]] = None) -> List[Image]:
        """
        List images
        
        Args:
            name: Only images whose reference matches (daemon-side filter)
            all: Show all images (including intermediates)
            filters: Filters to apply
        
        Returns:
            List of Image objects
        """
        filters = dict(filters or {})
        if name:
            filters['reference'] = [name]
        
        params = {'all': all}
        if filters:
            params['filters'] = filters
        
        images_data = self.client.http.get('/images/json', params=params) or []
        return [Image(img_data, self) for img_data in images_data]
    
    def inspect(self, name: str) -> Dict[str, Any]:
        """
        Inspect image
        
        Raises:
            ImageNotFound: If image not found
        """
        try:
            return self.client.http.get(f'/images/{name}/json')
        except NotFound as e:
            raise ImageNotFound(
                f"Image not found: {name}", response=e.response,
                status_code=e.status_code, explanation=e.explanation
            ) from e
    
    def get(self, name: str) -> Image:
        """
        Get image by name or ID
        
        Raises:
            ImageNotFound: If image not found
        """
        return Image(self.inspect(name), self)
    
    def exists(self, name: str) -> bool:
        try:
            self.inspect(name)
        except ImageNotFound:
            return False
        return True
    
    def pull(self, reference: str, tag: Optional[str] = None,
             platform: Optional[str] = None, auth_config: Optional[Dict[str, Any]] = None,
             handler: Optional[StreamHandler] = None, background: bool = True) -> StreamTask:
        """
        Pull image from registry
        
        Progress messages (PullProgress) go to handler.on_item as they arrive.
        The returned task's result() is the pulled Image.
        
        Args:
            reference: Image reference, e.g. 'nginx', 'nginx:alpine', 'repo@sha256:...'
            tag: Tag, if not part of the reference
            platform: Platform (e.g., linux/amd64)
            auth_config: Registry credentials ({'username': ..., 'password': ...})
            handler: Receives stream lifecycle hooks
            background: Start in a background thread; otherwise the caller runs the task
        
        Returns:
            StreamTask
        """
        ref = ImageReference.parse(reference, tag=tag)
        
        params = {'fromImage': ref.repository}
        params['tag'] = ref.digest or ref.tag
        if platform:
            params['platform'] = platform
        
        headers = {}
        if auth_config:
            headers['X-Registry-Auth'] = encode_auth_config(auth_config)
        
        def open_stream():
            logger.info(f"Pulling image {ref}...")
            return self.client.http.post('/images/create', params=params, headers=headers, stream=True)
        
        def finalize():
            image = self.get(str(ref))
            logger.info(f"Pulled image {ref} ({image.short_id})")
            return image
        
        task = StreamTask(open_stream, iter_pull_progress, handler=handler,
                          finalize=finalize, name=f"pull {ref}")
        return task.start() if background else task
    
    def remove(self, image: str, force: bool = False, noprune: bool = False):
        """
        Remove image
        
        Args:
            image: Image name or ID
            force: Force removal
            noprune: Don't delete untagged parents
        """
        params = {'force': force, 'noprune': noprune}
        try:
            return self.client.http.delete(f'/images/{image}', params=params)
        except NotFound as e:
            raise ImageNotFound(
                f"Image not found: {image}", response=e.response,
                status_code=e.status_code, explanation=e.explanation
            ) from e
