#!/usr/bin/env python3
"""
Transcode Worker

This script runs in a Kubernetes Job to package a single uploaded clip as
HLS. It downloads the original through a presigned URL, probes it with
ffprobe, segments it with ffmpeg, uploads the playlist and segments to
MinIO, and reports the result to the API's job callback.
"""
import os
import sys
import json
import tempfile
import subprocess
import httpx
from minio import Minio
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

MASTER_PLAYLIST = "master.m3u8"

CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
}


def download(source_url: str, path: str):
    """Stream the original to disk."""
    with httpx.stream("GET", source_url, timeout=None, follow_redirects=True) as response:
        response.raise_for_status()
        with open(path, "wb") as f:
            for chunk in response.iter_bytes():
                f.write(chunk)


def probe(path: str) -> dict:
    """Duration and dimensions of the first video stream."""
    result = subprocess.run(
        [
            "ffprobe", "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height:format=duration",
            "-of", "json",
            path
        ],
        capture_output=True,
        text=True,
        check=True
    )
    info = json.loads(result.stdout)
    stream = (info.get("streams") or [{}])[0]
    duration = info.get("format", {}).get("duration")
    return {
        "durationS": float(duration) if duration else None,
        "width": stream.get("width"),
        "height": stream.get("height"),
    }


def transcode(input_file: str, output_dir: str):
    ffmpeg_cmd = [
        "ffmpeg",
        "-i", input_file,
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-c:a", "aac",
        "-b:a", "128k",
        "-f", "hls",
        "-hls_time", "6",
        "-hls_playlist_type", "vod",
        "-hls_segment_filename", os.path.join(output_dir, "segment_%04d.ts"),
        "-y",
        os.path.join(output_dir, MASTER_PLAYLIST)
    ]

    logger.info(f"Running ffmpeg: {' '.join(ffmpeg_cmd)}")
    subprocess.run(ffmpeg_cmd, capture_output=True, text=True, check=True)


def upload_dir(minio_client: Minio, bucket: str, prefix: str, output_dir: str):
    for filename in sorted(os.listdir(output_dir)):
        extension = os.path.splitext(filename)[1]
        minio_client.fput_object(
            bucket_name=bucket,
            object_name=f"{prefix}{filename}",
            file_path=os.path.join(output_dir, filename),
            content_type=CONTENT_TYPES.get(extension, "application/octet-stream")
        )


def report(callback_url: str, secret: str, body: dict):
    """POST the result to the API. Raises on a non-2xx answer."""
    response = httpx.post(callback_url, json=body, headers={"x-job-secret": secret}, timeout=30.0)
    response.raise_for_status()
    logger.info(f"Reported clip {body['clipId']} to API")


def main():
    # Get environment variables
    clip_id = int(os.environ['CLIP_ID'])
    source_url = os.environ['SOURCE_URL']
    output_bucket = os.environ['OUTPUT_BUCKET']
    output_prefix = os.environ['OUTPUT_PREFIX']
    callback_url = os.environ['CALLBACK_URL']
    job_secret = os.environ['JOB_SHARED_SECRET']
    minio_endpoint = os.environ['MINIO_ENDPOINT']
    minio_access_key = os.environ['MINIO_ACCESS_KEY']
    minio_secret_key = os.environ['MINIO_SECRET_KEY']
    minio_secure = os.environ.get('MINIO_SECURE', 'false').lower() == 'true'

    logger.info(f"Transcoding clip {clip_id} to {output_bucket}/{output_prefix}")

    # Initialize MinIO client
    minio_client = Minio(
        minio_endpoint,
        access_key=minio_access_key,
        secret_key=minio_secret_key,
        secure=minio_secure
    )

    # Create temp directory for processing
    with tempfile.TemporaryDirectory() as tmpdir:
        input_file = os.path.join(tmpdir, "input")
        output_dir = os.path.join(tmpdir, "hls")
        os.makedirs(output_dir)

        try:
            logger.info("Downloading original...")
            download(source_url, input_file)

            metadata = probe(input_file)
            logger.info(f"Probed clip {clip_id}: {metadata}")

            transcode(input_file, output_dir)
            logger.info("HLS rendition created")

            upload_dir(minio_client, output_bucket, output_prefix, output_dir)
            logger.info("HLS rendition uploaded")

            report(callback_url, job_secret, {
                "clipId": clip_id,
                "hlsPrefix": output_prefix,
                **{key: value for key, value in metadata.items() if value},
            })

            logger.info(f"Clip {clip_id} transcoded successfully!")
            sys.exit(0)

        except subprocess.CalledProcessError as e:
            logger.error(f"{e.cmd[0]} failed: {e.stderr}")
            report(callback_url, job_secret, {
                "clipId": clip_id,
                "failed": True,
                "reason": f"{e.cmd[0]} exited with status {e.returncode}",
            })
            sys.exit(1)

        except Exception as e:
            logger.error(f"Error transcoding clip: {e}", exc_info=True)
            report(callback_url, job_secret, {
                "clipId": clip_id,
                "failed": True,
                "reason": str(e) or e.__class__.__name__,
            })
            sys.exit(1)


if __name__ == "__main__":
    main()
