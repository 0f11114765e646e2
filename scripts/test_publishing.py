import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from pydantic import TypeAdapter, ValidationError
from pymongo.errors import PyMongoError

from socialhub.models.credential import (
    FacebookCredentials,
    InstagramCredentials,
    LinkedInCredentials,
    ManagedPage,
    Platform,
    YouTubeChannel,
    YouTubeCredentials,
)
from socialhub.models.post import AnalyticsStatus, Post, PostType
from socialhub.platforms.base import MediaFile, PublishRequest, PublishResult
from socialhub.platforms.facebook import FacebookAdapter
from socialhub.platforms.instagram import InstagramAdapter
from socialhub.platforms.linkedin import LinkedInAdapter
from socialhub.platforms.youtube import YouTubeAdapter
from socialhub.services.config_service import AppConfig
from socialhub.services.publishing_service import (
    extract_hashtags,
    post_to_all_platforms,
    post_to_single_platform,
    record_post,
)
from socialhub.services.token_service import encrypt_token
from socialhub.utils.errors import ContainerError, InvalidRequestError


def make_credential(credentials, user_id="user-1"):
    credential = MagicMock()
    credential.user_id = user_id
    credential.platform = credentials.platform
    credential.reseller_id = None
    credential.credentials = credentials
    credential.save = AsyncMock()
    return credential


def response(payload=None, headers=None):
    res = MagicMock()
    res.status_code = 200
    res.json.return_value = payload or {}
    res.headers = headers or {}
    return res


def instagram_credential():
    return make_credential(InstagramCredentials(
        access_token_enc=encrypt_token("ig_token"),
        instagram_account_id="ig_user_123",
    ))


class TestInstagramContainer(unittest.IsolatedAsyncioTestCase):

    @patch("httpx.AsyncClient")
    async def test_polling_gives_up_after_30_attempts(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.return_value = response({"id": "container_123"})
        mock_client.get.return_value = response({"status_code": "IN_PROGRESS", "status": "IN_PROGRESS"})
        sleep = AsyncMock()
        adapter = InstagramAdapter(sleep=sleep)

        request = PublishRequest(user_id="user-1", post_type="post", content="hi", image_url="https://cdn.example.com/a.jpg")
        with self.assertRaises(ContainerError):
            await adapter.publish(instagram_credential(), request)

        self.assertEqual(mock_client.get.await_count, 30)
        self.assertEqual(sleep.await_count, 30)
        sleep.assert_awaited_with(10)
        # container created, never published
        self.assertEqual(mock_client.post.await_count, 1)

    @patch("httpx.AsyncClient")
    async def test_error_status_is_terminal(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.return_value = response({"id": "container_123"})
        mock_client.get.return_value = response({"status_code": "ERROR", "status": "Error: unsupported format"})
        adapter = InstagramAdapter(sleep=AsyncMock())

        request = PublishRequest(user_id="user-1", post_type="post", content="hi", image_url="https://cdn.example.com/a.jpg")
        with self.assertRaises(ContainerError) as ctx:
            await adapter.publish(instagram_credential(), request)

        self.assertIn("unsupported format", str(ctx.exception))
        self.assertEqual(mock_client.get.await_count, 1)

    @patch("httpx.AsyncClient")
    async def test_reel_publishes_once_finished(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.side_effect = [response({"id": "container_123"}), response({"id": "media_123"})]
        mock_client.get.side_effect = [
            response({"status_code": "IN_PROGRESS"}),
            response({"status_code": "IN_PROGRESS"}),
            response({"status_code": "FINISHED"}),
        ]
        storage = MagicMock()
        storage.upload.return_value = "https://cdn.example.com/instagram/videos/1.mp4"
        adapter = InstagramAdapter(storage=storage, sleep=AsyncMock())

        request = PublishRequest(
            user_id="user-1",
            post_type="reel",
            content="new reel #launch",
            video=MediaFile(b"fake_video_bytes", "clip.mp4", "video/mp4"),
        )
        result = await adapter.publish(instagram_credential(), request)

        self.assertEqual(result.post_id, "media_123")
        self.assertEqual(result.media_url, "https://cdn.example.com/instagram/videos/1.mp4")
        create_params = mock_client.post.call_args_list[0].kwargs["params"]
        self.assertEqual(create_params["media_type"], "REELS")
        self.assertEqual(create_params["video_url"], "https://cdn.example.com/instagram/videos/1.mp4")
        publish_params = mock_client.post.call_args_list[1].kwargs["params"]
        self.assertEqual(publish_params["creation_id"], "container_123")

    async def test_post_without_image_is_rejected(self):
        adapter = InstagramAdapter(sleep=AsyncMock())
        request = PublishRequest(user_id="user-1", post_type="post", content="text only")
        with self.assertRaises(InvalidRequestError):
            await adapter.publish(instagram_credential(), request)


class TestFacebookPublishing(unittest.IsolatedAsyncioTestCase):

    def credential(self):
        return make_credential(FacebookCredentials(
            user_access_token_enc=encrypt_token("user_token"),
            user_id="fb_user",
            pages=[ManagedPage(pageId="page_123", pageName="Brand", pageAccessTokenEnc=encrypt_token("page_token"))],
        ))

    @patch("httpx.AsyncClient")
    async def test_text_goes_to_feed(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.return_value = response({"id": "page_123_999"})

        result = await FacebookAdapter().publish(
            self.credential(), PublishRequest(user_id="user-1", post_type="post", content="hello")
        )

        call = mock_client.post.call_args_list[0]
        self.assertTrue(call.args[0].endswith("/page_123/feed"))
        self.assertEqual(call.kwargs["params"]["message"], "hello")
        self.assertEqual(call.kwargs["params"]["access_token"], "page_token")
        self.assertEqual(result.post_id, "page_123_999")
        self.assertEqual(result.page_id, "page_123")

    @patch("httpx.AsyncClient")
    async def test_image_is_uploaded_then_posted_to_photos(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.return_value = response({"id": "photo_1", "post_id": "page_123_42"})
        storage = MagicMock()
        storage.upload.return_value = "https://cdn.example.com/facebook/images/1.jpg"

        request = PublishRequest(
            user_id="user-1", post_type="post", content="look", image=MediaFile(b"img", "a.jpg", "image/jpeg")
        )
        result = await FacebookAdapter(storage=storage).publish(self.credential(), request)

        storage.upload.assert_called_once_with(b"img", "facebook/images", "a.jpg", "image/jpeg")
        call = mock_client.post.call_args_list[0]
        self.assertIn("/photos", call.args[0])
        self.assertEqual(call.kwargs["params"]["url"], "https://cdn.example.com/facebook/images/1.jpg")
        self.assertEqual(result.post_id, "page_123_42")

    @patch("httpx.AsyncClient")
    async def test_video_uploads_multipart_to_graph_video(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.return_value = response({"id": "video_1"})

        request = PublishRequest(
            user_id="user-1", post_type="video", content="watch", video=MediaFile(b"vid", "v.mp4", "video/mp4")
        )
        await FacebookAdapter().publish(self.credential(), request)

        call = mock_client.post.call_args_list[0]
        self.assertIn("graph-video.facebook.com", call.args[0])
        self.assertIn("/videos", call.args[0])
        self.assertEqual(call.kwargs["files"]["source"][1], b"vid")

    @patch("httpx.AsyncClient")
    async def test_local_video_is_copied_to_storage(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.return_value = response({"id": "video_1"})
        storage = MagicMock()
        storage.upload.return_value = "https://cdn.example.com/facebook/videos/1.mp4"

        request = PublishRequest(
            user_id="user-1", post_type="post", content="watch", video=MediaFile(b"vid", "v.mp4", "video/mp4")
        )
        result = await FacebookAdapter(storage=storage).publish(self.credential(), request)

        storage.upload.assert_called_once_with(b"vid", "facebook/videos", "v.mp4", "video/mp4")
        self.assertEqual(result.media_url, "https://cdn.example.com/facebook/videos/1.mp4")
        self.assertEqual(result.post_type, "video")
        self.assertEqual(mock_client.post.call_args.kwargs["files"]["source"][1], b"vid")

    async def test_unknown_page_is_rejected(self):
        request = PublishRequest(user_id="user-1", post_type="post", content="x", page_id="other_page")
        with self.assertRaises(InvalidRequestError):
            await FacebookAdapter().publish(self.credential(), request)


class TestLinkedInPublishing(unittest.IsolatedAsyncioTestCase):

    @patch("httpx.AsyncClient")
    async def test_image_flow(self, mock_client_cls):
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        reg_response = response({
            "value": {
                "uploadMechanism": {
                    "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {"uploadUrl": "http://upload.linkedin"}
                },
                "asset": "urn:li:digitalmediaAsset:123",
            }
        })
        mock_client.post.side_effect = [reg_response, response({"id": "urn:li:share:456"})]
        mock_client.put.return_value = response()
        storage = MagicMock()
        storage.upload.return_value = "https://cdn.example.com/linkedin/images/1.png"
        credential = make_credential(LinkedInCredentials(access_token_enc=encrypt_token("li_token"), user_id="abc"))

        request = PublishRequest(
            user_id="user-1", post_type="post", content="update", image=MediaFile(b"png", "i.png", "image/png")
        )
        result = await LinkedInAdapter(storage=storage).publish(credential, request)

        reg_call = mock_client.post.call_args_list[0]
        self.assertEqual(
            reg_call.kwargs["json"]["registerUploadRequest"]["recipes"][0],
            "urn:li:digitalmediaRecipe:feedshare-image",
        )
        self.assertEqual(mock_client.put.call_args.kwargs["content"], b"png")
        post_call = mock_client.post.call_args_list[1]
        share = post_call.kwargs["json"]["specificContent"]["com.linkedin.ugc.ShareContent"]
        self.assertEqual(share["shareMediaCategory"], "IMAGE")
        self.assertEqual(share["media"][0]["media"], "urn:li:digitalmediaAsset:123")
        self.assertEqual(post_call.kwargs["json"]["author"], "urn:li:person:abc")
        self.assertEqual(post_call.kwargs["headers"]["X-Restli-Protocol-Version"], "2.0.0")
        self.assertEqual(result.post_id, "urn:li:share:456")


class TestYouTubePublishing(unittest.IsolatedAsyncioTestCase):

    @patch("socialhub.platforms.youtube.resolve_app_config", new_callable=AsyncMock)
    @patch("httpx.AsyncClient")
    async def test_expired_token_is_refreshed_before_upload(self, mock_client_cls, mock_resolve):
        mock_resolve.return_value = AppConfig("gid", "gsecret", "https://api.example.com/youtube/callback", "environment")
        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        mock_client.post.side_effect = [
            response({"access_token": "fresh_token", "expires_in": 3600}),
            response(headers={"location": "https://upload.example.com/session/1"}),
        ]
        mock_client.put.return_value = response({"id": "vid_1"})
        mock_client.get.return_value = response({"items": [{
            "snippet": {
                "channelId": "chan_1",
                "title": "Launch day",
                "thumbnails": {"high": {"url": "https://i.ytimg.com/hq.jpg"}},
            }
        }]})
        credential = make_credential(YouTubeCredentials(
            access_token_enc=encrypt_token("stale_token"),
            refresh_token_enc=encrypt_token("refresh"),
            expiry=0,
            channel=YouTubeChannel(id="chan_1"),
        ))

        request = PublishRequest(
            user_id="user-1",
            post_type="upload",
            content="Launch day\nFull description here",
            video=MediaFile(b"mp4", "v.mp4", "video/mp4"),
        )
        result = await YouTubeAdapter().publish(credential, request)

        credential.save.assert_awaited_once()
        refresh_call = mock_client.post.call_args_list[0]
        self.assertEqual(refresh_call.kwargs["data"]["grant_type"], "refresh_token")
        session_call = mock_client.post.call_args_list[1]
        self.assertEqual(session_call.kwargs["headers"]["Authorization"], "Bearer fresh_token")
        self.assertEqual(session_call.kwargs["json"]["snippet"]["title"], "Launch day")
        self.assertEqual(session_call.kwargs["json"]["status"]["privacyStatus"], "public")
        self.assertEqual(mock_client.put.call_args.args[0], "https://upload.example.com/session/1")
        self.assertEqual(result.video_id, "vid_1")
        self.assertEqual(result.channel_id, "chan_1")
        self.assertEqual(result.thumbnail_url, "https://i.ytimg.com/hq.jpg")
        self.assertEqual(result.video_url, "https://www.youtube.com/watch?v=vid_1")

    async def test_video_is_required(self):
        credential = make_credential(YouTubeCredentials(access_token_enc=encrypt_token("t"), expiry=0))
        with self.assertRaises(InvalidRequestError):
            await YouTubeAdapter().publish(credential, PublishRequest(user_id="u", post_type="upload", content="x"))


def fake_adapter(name, error=None):
    adapter = MagicMock()
    adapter.name = name
    if error:
        adapter.publish = AsyncMock(side_effect=error)
    else:
        adapter.publish = AsyncMock(return_value=PublishResult(post_id=f"{name.lower()}_post"))
    return adapter


@patch("socialhub.services.publishing_service.record_post", new_callable=AsyncMock, return_value=None)
@patch("socialhub.services.publishing_service.require_credential", new_callable=AsyncMock)
class TestOrchestrator(unittest.IsolatedAsyncioTestCase):

    async def test_one_failure_does_not_abort_the_others(self, mock_require, mock_record):
        registry = {
            "FACEBOOK": fake_adapter("FACEBOOK"),
            "INSTAGRAM": fake_adapter("INSTAGRAM", error=ContainerError("Media container failed. Status: ERROR")),
            "LINKEDIN": fake_adapter("LINKEDIN"),
        }

        results = await post_to_all_platforms(
            registry,
            "user-1",
            [{"platform": "facebook"}, {"platform": "instagram"}, {"platform": "linkedin"}],
            "hello #world",
            image_url="https://cdn.example.com/a.jpg",
        )

        self.assertEqual([r["platform"] for r in results["success"]], ["FACEBOOK", "LINKEDIN"])
        self.assertEqual([r["postId"] for r in results["success"]], ["facebook_post", "linkedin_post"])
        self.assertEqual(results["failed"], [
            {"platform": "INSTAGRAM", "error": "Media container failed. Status: ERROR"},
        ])
        # platforms run in the order given
        self.assertEqual(mock_record.await_count, 2)

    async def test_unsupported_platform_is_reported_as_failed(self, mock_require, mock_record):
        results = await post_to_all_platforms({}, "user-1", [{"platform": "myspace"}], "hi")
        self.assertEqual(results["success"], [])
        self.assertEqual(results["failed"][0]["error"], "Unsupported platform: MYSPACE")

    async def test_base64_image_is_uploaded_once(self, mock_require, mock_record):
        storage = MagicMock()
        storage.upload_base64.return_value = "https://cdn.example.com/posts/images/1.png"
        registry = {"FACEBOOK": fake_adapter("FACEBOOK"), "LINKEDIN": fake_adapter("LINKEDIN")}

        await post_to_all_platforms(
            registry,
            "user-1",
            [{"platform": "facebook"}, {"platform": "linkedin"}],
            "hi",
            image_url="data:image/png;base64,iVBORw0KGgo=",
            storage=storage,
        )

        storage.upload_base64.assert_called_once()
        request = registry["LINKEDIN"].publish.call_args.args[1]
        self.assertEqual(request.image_url, "https://cdn.example.com/posts/images/1.png")

    async def test_single_platform_validates_input(self, mock_require, mock_record):
        registry = {"FACEBOOK": fake_adapter("FACEBOOK")}
        cases = [
            ((None, "post", "x"), "Platform is required"),
            (("facebook", None, "x"), "Post type is required"),
            (("facebook", "post", ""), "Content is required"),
        ]
        for args, message in cases:
            with self.assertRaises(InvalidRequestError) as ctx:
                await post_to_single_platform(registry, "user-1", *args)
            self.assertEqual(str(ctx.exception), message)
        registry["FACEBOOK"].publish.assert_not_called()

    async def test_single_platform_records_post(self, mock_require, mock_record):
        registry = {"FACEBOOK": fake_adapter("FACEBOOK")}

        result = await post_to_single_platform(registry, "user-1", "facebook", "post", "Hi #summer #sale")

        self.assertEqual(result, {"platform": "FACEBOOK", "postId": "facebook_post"})
        user_id, platform, post_type, content, publish_result = mock_record.call_args.args
        self.assertEqual((user_id, platform, post_type), ("user-1", "FACEBOOK", "post"))
        self.assertEqual(publish_result.post_id, "facebook_post")


    async def test_failed_image_upload_publishes_without_image(self, mock_require, mock_record):
        storage = MagicMock()
        storage.upload_base64.side_effect = RuntimeError("S3 down")
        registry = {"FACEBOOK": fake_adapter("FACEBOOK"), "LINKEDIN": fake_adapter("LINKEDIN")}

        results = await post_to_all_platforms(
            registry,
            "user-1",
            [{"platform": "facebook"}, {"platform": "linkedin"}],
            "hi",
            image_url="data:image/png;base64,iVBORw0KGgo=",
            storage=storage,
        )

        self.assertEqual([r["platform"] for r in results["success"]], ["FACEBOOK", "LINKEDIN"])
        self.assertEqual(results["failed"], [])
        request = registry["FACEBOOK"].publish.call_args.args[1]
        self.assertIsNone(request.image_url)

    async def test_unknown_post_type_is_rejected(self, mock_require, mock_record):
        registry = {"FACEBOOK": fake_adapter("FACEBOOK")}
        with self.assertRaises(InvalidRequestError) as ctx:
            await post_to_single_platform(registry, "user-1", "facebook", "carousel", "x")
        self.assertEqual(str(ctx.exception), "Invalid post type: carousel")
        registry["FACEBOOK"].publish.assert_not_called()


@patch("socialhub.services.publishing_service.Post")
class TestRecordPost(unittest.IsolatedAsyncioTestCase):

    def stored_fields(self, mock_post_cls):
        return mock_post_cls.call_args.kwargs

    async def test_post_is_saved_pending_with_hashtags(self, mock_post_cls):
        mock_post_cls.return_value.insert = AsyncMock()
        result = PublishResult(post_id="page_123_999", page_id="page_123", account_id="page_123",
                               media_url="https://cdn.example.com/a.jpg")

        post = await record_post("user-1", "FACEBOOK", "post", "Launch day #summer #sale", result)

        self.assertIs(post, mock_post_cls.return_value)
        mock_post_cls.return_value.insert.assert_awaited_once()
        fields = self.stored_fields(mock_post_cls)
        self.assertEqual(fields["userId"], "user-1")
        self.assertEqual(fields["platform"], "FACEBOOK")
        self.assertEqual(fields["postId"], "page_123_999")
        self.assertEqual(fields["postType"], "post")
        self.assertEqual(fields["pageId"], "page_123")
        self.assertEqual(fields["mediaUrl"], "https://cdn.example.com/a.jpg")
        self.assertEqual(fields["analyticsStatus"], "pending")
        self.assertEqual(fields["hashtags"], ["summer", "sale"])

    async def test_youtube_video_is_stored_as_upload(self, mock_post_cls):
        mock_post_cls.return_value.insert = AsyncMock()
        await record_post("user-1", "YOUTUBE", "video", "My video", PublishResult(post_id="vid_1"))
        self.assertEqual(self.stored_fields(mock_post_cls)["postType"], "upload")

    async def test_adapter_post_type_wins(self, mock_post_cls):
        mock_post_cls.return_value.insert = AsyncMock()
        await record_post("user-1", "FACEBOOK", "post", "x", PublishResult(post_id="v1", post_type="video"))
        self.assertEqual(self.stored_fields(mock_post_cls)["postType"], "video")

    async def test_database_error_is_logged_not_raised(self, mock_post_cls):
        mock_post_cls.return_value.insert = AsyncMock(side_effect=PyMongoError("connection refused"))

        with self.assertLogs("publishing", level="ERROR") as logs:
            post = await record_post("user-1", "FACEBOOK", "post", "x", PublishResult(post_id="p1"))

        self.assertIsNone(post)
        self.assertIn("connection refused", logs.output[0])

    @patch("socialhub.services.publishing_service.require_credential", new_callable=AsyncMock)
    async def test_single_platform_youtube_video(self, mock_require, mock_post_cls):
        mock_post_cls.return_value.insert = AsyncMock()
        registry = {"YOUTUBE": fake_adapter("YOUTUBE")}

        await post_to_single_platform(registry, "user-1", "youtube", "video", "title")

        self.assertEqual(registry["YOUTUBE"].publish.call_args.args[1].post_type, "video")
        self.assertEqual(self.stored_fields(mock_post_cls)["postType"], "upload")


class TestPostModel(unittest.TestCase):

    def test_hook_drops_metrics_the_post_cannot_have(self):
        post = Post.model_construct(
            platform="INSTAGRAM",
            analytics={"likes": 3, "saved": 2, "views": 9, "shares": 1, "clicks": 4},
        )

        post.clean_analytics()

        self.assertEqual(set(post.analytics), {"likes", "saves", "lastUpdated"})
        self.assertEqual(post.analytics["saves"], 2)

    def test_hook_drops_video_metrics_from_facebook_posts(self):
        post = Post.model_construct(platform="FACEBOOK", analytics={"likes": 1, "views": 100, "reach": 7})

        post.clean_analytics()

        self.assertEqual(set(post.analytics), {"likes", "reach", "lastUpdated"})

    def test_enumerated_fields_reject_unknown_values(self):
        for literal, value in ((Platform, "TWITTER"), (PostType, "nonsense"), (AnalyticsStatus, "bogus")):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    TypeAdapter(literal).validate_python(value)
        self.assertEqual(TypeAdapter(PostType).validate_python("reel"), "reel")


class TestHashtags(unittest.TestCase):

    def test_extract_hashtags(self):
        self.assertEqual(extract_hashtags("New drop #summer #sale_2024 today!"), ["summer", "sale_2024"])
        self.assertEqual(extract_hashtags(None), [])


if __name__ == "__main__":
    unittest.main()
